"""Async helpers shared by the session and dashboard orchestrators."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from loguru import logger

_current_run: ContextVar[str] = ContextVar("citypulse_run", default="-")


def current_run() -> str:
    """Return the orchestration run id bound to the running task."""
    return _current_run.get()


@contextmanager
def bind_run(run_id: str) -> Iterator[None]:
    token = _current_run.set(run_id)
    try:
        yield
    finally:
        _current_run.reset(token)


class GenerationCounter:
    """Monotonic token source identifying the current orchestration run.

    A run captures the token returned by ``advance`` and checks ``is_current``
    before committing any state; completions from superseded runs no-op.
    """

    def __init__(self) -> None:
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def advance(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._current


class Listeners[T]:
    """Registry of state listeners notified with each new snapshot."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[T], None]] = []

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, snapshot: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                # A failing listener never stops the publishing run.
                logger.exception("state.listener.error")
