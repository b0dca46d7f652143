"""Response decoders, one per endpoint."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from citypulse.errors import IndexNotFoundError, PayloadShapeError, TransportError
from citypulse.types import ComponentId, ComponentRef, DashboardQuery


def _is_sequence(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def decode_dashboard_index(payload: object, query: DashboardQuery) -> tuple[ComponentRef, ...]:
    """Resolve a dashboard index payload to the ordered component list.

    Expects ``{"data": {city: [{"index": str, "components": [id, ...]}, ...]}}``.
    The first entry whose ``index`` equals ``query.index`` exactly wins, and its
    components are truncated to ``max(1, query.limit)``.
    """
    data = payload.get("data") if isinstance(payload, dict) else None
    group = data.get(query.city) if isinstance(data, dict) else None
    if not _is_sequence(group):
        raise PayloadShapeError("Unexpected dashboard payload.")

    entry = next(
        (item for item in group if isinstance(item, dict) and item.get("index") == query.index),
        None,
    )
    if entry is None:
        raise IndexNotFoundError(query.city, query.index)

    components = entry.get("components")
    if not _is_sequence(components):
        components = []
    return tuple(ComponentRef(_component_id(raw_id)) for raw_id in components[: query.effective_limit])


def _component_id(raw_id: object) -> ComponentId:
    # JSON numbers may arrive as integral floats such as 114.0.
    if isinstance(raw_id, float) and raw_id.is_integer():
        return int(raw_id)
    if isinstance(raw_id, bool) or not isinstance(raw_id, (int, str)):
        raise PayloadShapeError(f"Unexpected component id: {raw_id!r}")
    return raw_id


def decode_generation_text(payload: object) -> str:
    """Extract the reply text from a ``generateContent`` response.

    Returns an empty string when the service produced no text; a service error
    payload or a blocked prompt is raised as ``TransportError``.
    """
    if not isinstance(payload, dict):
        raise TransportError("invalid generation response: expected a JSON object")

    error = payload.get("error")
    if error is not None:
        raise TransportError(_error_message(error), status_code=_error_code(error))

    candidates = payload.get("candidates")
    if not _is_sequence(candidates) or not candidates:
        feedback = payload.get("promptFeedback")
        if isinstance(feedback, dict) and feedback.get("blockReason"):
            raise TransportError(f"Response was blocked due to {feedback['blockReason']}")
        return ""

    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not _is_sequence(parts):
        return ""
    return "".join(part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str))


def _error_message(error: Any) -> str:
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return str(error)


def _error_code(error: Any) -> int | None:
    if isinstance(error, dict) and isinstance(error.get("code"), int):
        return error["code"]
    return None
