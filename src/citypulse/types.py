"""Shared data types for the orchestration layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal

type Role = Literal["user", "model"]
type ComponentId = int | str
type JSON = Any

MIN_COMPONENT_LIMIT = 1
MAX_COMPONENT_LIMIT = 12


@dataclass(frozen=True)
class Message:
    """One conversational turn."""

    role: Role
    text: str

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", text=text)

    @classmethod
    def model(cls, text: str) -> Message:
        return cls(role="model", text=text)

    def to_content(self) -> dict[str, Any]:
        """Render as a generation service content block."""
        return {"role": self.role, "parts": [{"text": self.text}]}


type Transcript = tuple[Message, ...]


def clamp_limit(raw: object) -> int:
    """Coerce a component limit into the accepted range.

    Unparseable or zero values fall back to the minimum.
    """
    try:
        value = int(raw)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        value = 0
    if not value:
        value = MIN_COMPONENT_LIMIT
    return max(MIN_COMPONENT_LIMIT, min(MAX_COMPONENT_LIMIT, value))


@dataclass(frozen=True)
class DashboardQuery:
    """Identifies one dashboard resolution attempt."""

    city: str
    index: str
    limit: int = 4

    @classmethod
    def create(cls, city: str, index: str, limit: object = 4) -> DashboardQuery:
        return cls(city=city, index=index, limit=clamp_limit(limit))

    @property
    def effective_limit(self) -> int:
        return max(MIN_COMPONENT_LIMIT, self.limit)


@dataclass(frozen=True)
class ComponentRef:
    """An opaque component identifier from a dashboard's component list."""

    id: ComponentId


@dataclass(frozen=True)
class Idle:
    status: Literal["idle"] = "idle"


@dataclass(frozen=True)
class Loading:
    status: Literal["loading"] = "loading"


@dataclass(frozen=True)
class Success[T]:
    data: T
    status: Literal["success"] = "success"


@dataclass(frozen=True)
class Failed:
    error: Exception
    status: Literal["failed"] = "failed"


type FetchState[T] = Idle | Loading | Success[T] | Failed

IDLE = Idle()
LOADING = Loading()


@dataclass(frozen=True)
class SessionState:
    """Observable snapshot of a conversation session."""

    model_name: str
    transcript: Transcript = ()
    loading: bool = False
    error: Exception | None = None
    draft: str = ""


@dataclass(frozen=True)
class DashboardState:
    """Observable snapshot of the resolver's current query."""

    query: DashboardQuery | None = None
    index_state: FetchState[tuple[ComponentRef, ...]] = IDLE
    components: tuple[ComponentRef, ...] = ()
    component_states: Mapping[ComponentId, FetchState[JSON]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def state_of(self, component_id: ComponentId) -> FetchState[JSON]:
        return self.component_states.get(component_id, IDLE)

    @property
    def settled(self) -> bool:
        """True once index resolution and every component fetch reached a terminal state."""
        if isinstance(self.index_state, Failed):
            return True
        if not isinstance(self.index_state, Success):
            return False
        return all(isinstance(self.state_of(ref.id), Success | Failed) for ref in self.components)
