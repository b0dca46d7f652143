"""Client for the hosted text-generation endpoint."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from loguru import logger

from citypulse.decoders import decode_generation_text
from citypulse.endpoints import strip_base_url
from citypulse.gateway import HttpGateway
from citypulse.types import Message

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash"
API_KEY_HEADER = "x-goog-api-key"


class TextGenerator(Protocol):
    async def generate(self, model_name: str, contents: Sequence[Message], credential: str) -> str: ...


def model_resource(model_name: str) -> str:
    """Normalize a free-text model name to ``models/<name>``."""
    name = model_name.strip() or DEFAULT_MODEL
    if name.startswith(("models/", "tunedModels/")):
        return name
    return f"models/{name}"


class GenerationClient:
    """Stateless ``generateContent`` caller; history is resent on every call."""

    def __init__(self, gateway: HttpGateway, *, api_base: str = DEFAULT_API_BASE) -> None:
        self._gateway = gateway
        self._api_base = strip_base_url(api_base)

    def endpoint(self, model_name: str) -> str:
        return f"{self._api_base}/{model_resource(model_name)}:generateContent"

    async def generate(self, model_name: str, contents: Sequence[Message], credential: str) -> str:
        body = {"contents": [message.to_content() for message in contents]}
        headers = {API_KEY_HEADER: credential, "Content-Type": "application/json"}
        logger.info("generation.request model={} turns={}", model_name, len(contents))
        payload = await self._gateway.post(self.endpoint(model_name), headers, body)
        return decode_generation_text(payload)
