"""Dashboard resolution: index lookup followed by per-component fan-out."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace
from types import MappingProxyType

from loguru import logger

from citypulse.concurrency import GenerationCounter, Listeners, bind_run
from citypulse.decoders import decode_dashboard_index
from citypulse.endpoints import component_chart_url, dashboard_index_url
from citypulse.errors import CityPulseError, TransportError
from citypulse.gateway import HttpGateway
from citypulse.types import (
    IDLE,
    LOADING,
    JSON,
    ComponentId,
    ComponentRef,
    DashboardQuery,
    DashboardState,
    Failed,
    FetchState,
    Success,
)


class DashboardResolver:
    """Resolves one ``DashboardQuery`` at a time.

    Every query advances a generation token and replaces the whole state. Runs
    check their token before each commit, so results from a superseded query
    are dropped instead of merged into the newer state.
    """

    def __init__(self, gateway: HttpGateway, *, base_url: str) -> None:
        self._gateway = gateway
        self._base_url = base_url
        self._runs = GenerationCounter()
        self._listeners: Listeners[DashboardState] = Listeners()
        self._state = DashboardState()
        self._tasks: set[asyncio.Task[DashboardState]] = set()

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def base_url(self) -> str:
        return self._base_url

    def subscribe(self, listener: Callable[[DashboardState], None]) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    async def build(self, query: DashboardQuery) -> DashboardState:
        """Resolve ``query`` and wait for every component fetch to settle."""
        token = self._begin(query)
        return await self._run(token, query)

    def request(self, query: DashboardQuery) -> asyncio.Task[DashboardState]:
        """Invalidate the current state now and resolve ``query`` in the background."""
        token = self._begin(query)
        task = asyncio.create_task(self._run(token, query), name=f"dashboard:{token}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def rebuild(self) -> asyncio.Task[DashboardState] | None:
        """Re-issue the current query under a fresh token."""
        if self._state.query is None:
            return None
        return self.request(self._state.query)

    async def wait_idle(self) -> None:
        while pending := [task for task in self._tasks if not task.done()]:
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        self._runs.advance()
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()

    def _begin(self, query: DashboardQuery) -> int:
        token = self._runs.advance()
        logger.info(
            "dashboard.query run={} city={} index={} limit={}", token, query.city, query.index, query.limit
        )
        self._commit(token, DashboardState(query=query, index_state=LOADING))
        return token

    async def _run(self, token: int, query: DashboardQuery) -> DashboardState:
        with bind_run(f"dashboard:{token}"):
            refs = await self._resolve_index(token, query)
            if refs is None or not self._runs.is_current(token):
                return self._state

            fetches = [self._fetch_component(token, query, component_id) for component_id in _unique_ids(refs)]
            await asyncio.gather(*fetches)
            if self._runs.is_current(token):
                logger.info("dashboard.settled components={}", _summarize(self._state))
            return self._state

    async def _resolve_index(self, token: int, query: DashboardQuery) -> tuple[ComponentRef, ...] | None:
        try:
            payload = await self._gateway.get(dashboard_index_url(self._base_url, query.city))
            refs = decode_dashboard_index(payload, query)
        except CityPulseError as exc:
            self._index_failed(token, query, exc)
            return None
        except Exception as exc:
            logger.exception("dashboard.index.error")
            self._index_failed(token, query, TransportError(str(exc) or type(exc).__name__))
            return None

        logger.info("dashboard.index.resolved ids={}", [ref.id for ref in refs])
        self._commit(
            token,
            DashboardState(
                query=query,
                index_state=Success(refs),
                components=refs,
                component_states=MappingProxyType({ref.id: IDLE for ref in refs}),
            ),
        )
        return refs

    def _index_failed(self, token: int, query: DashboardQuery, exc: Exception) -> None:
        if self._commit(token, DashboardState(query=query, index_state=Failed(exc))):
            logger.warning("dashboard.index.failed error={}", exc)

    async def _fetch_component(self, token: int, query: DashboardQuery, component_id: ComponentId) -> None:
        self._set_component(token, component_id, LOADING)
        try:
            data = await self._gateway.get(component_chart_url(self._base_url, component_id, query.city))
        except CityPulseError as exc:
            state: FetchState[JSON] = Failed(exc)
        except Exception as exc:
            logger.exception("dashboard.component.error id={}", component_id)
            state = Failed(TransportError(str(exc) or type(exc).__name__))
        else:
            state = Success(data)

        if self._set_component(token, component_id, state) and isinstance(state, Failed):
            logger.warning("dashboard.component.failed id={} error={}", component_id, state.error)

    def _set_component(self, token: int, component_id: ComponentId, state: FetchState[JSON]) -> bool:
        if not self._runs.is_current(token):
            return False
        states = dict(self._state.component_states)
        states[component_id] = state
        return self._commit(token, replace(self._state, component_states=MappingProxyType(states)))

    def _commit(self, token: int, state: DashboardState) -> bool:
        if not self._runs.is_current(token):
            logger.debug("dashboard.result.stale run={} current={}", token, self._runs.current)
            return False
        self._state = state
        self._listeners.publish(state)
        return True


def _unique_ids(refs: tuple[ComponentRef, ...]) -> list[ComponentId]:
    return list(dict.fromkeys(ref.id for ref in refs))


def _summarize(state: DashboardState) -> dict[str, int]:
    counts: dict[str, int] = {}
    for ref in state.components:
        status = state.state_of(ref.id).status
        counts[status] = counts.get(status, 0) + 1
    return counts
