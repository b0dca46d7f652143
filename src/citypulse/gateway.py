"""HTTP request gateway used by the orchestrators."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, Self

import httpx
from loguru import logger

from citypulse.errors import TransportError
from citypulse.types import JSON

DEFAULT_TIMEOUT_SECONDS = 20.0
USER_AGENT = "citypulse/0.1"
MAX_ERROR_DETAIL_CHARS = 500


class HttpGateway(Protocol):
    """Minimal async contract: send a request, return parsed JSON or raise ``TransportError``."""

    async def get(self, url: str) -> JSON: ...

    async def post(self, url: str, headers: Mapping[str, str], body: JSON) -> JSON: ...


class HttpxGateway:
    """``HttpGateway`` backed by ``httpx.AsyncClient``."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"User-Agent": USER_AGENT},
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get(self, url: str) -> JSON:
        return await self.request("GET", url)

    async def post(self, url: str, headers: Mapping[str, str], body: JSON) -> JSON:
        return await self.request("POST", url, headers=headers, body=body)

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: JSON = None,
    ) -> JSON:
        kwargs: dict[str, Any] = {"headers": dict(headers or {})}
        if body is not None:
            kwargs["json"] = body

        logger.debug("gateway.request method={} url={}", method, url)
        try:
            response = await self._client.request(method.upper(), url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportError(f"timeout: {exc!s}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

        if response.is_error:
            raise TransportError(_error_detail(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"invalid json response: {exc!s}", status_code=response.status_code) from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str) and error:
            return error

    detail = response.text.strip()[:MAX_ERROR_DETAIL_CHARS]
    if detail:
        return f"http {response.status_code}: {detail}"
    return f"http {response.status_code}"
