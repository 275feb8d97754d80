"""Client for the usage backend: snapshot reads plus the push event stream."""

import logging
from typing import AsyncIterator, Protocol

import httpx
from pydantic import TypeAdapter

from .config import BACKEND_URL, PUSH_EVENT, REQUEST_TIMEOUT_S
from .models import DailyStat, DeltaMessage, OverallStats, ProjectStat, UsageSnapshot

log = logging.getLogger(__name__)

_PROJECTS = TypeAdapter(list[ProjectStat])
_DAILY = TypeAdapter(list[DailyStat])


class BackendError(Exception):
    """Transport, HTTP status, or decode failure talking to the backend."""


class Backend(Protocol):
    async def fetch_snapshot(self, data_path: str | None = None, force_full: bool = False) -> UsageSnapshot: ...

    async def fetch_delta(self, data_path: str | None = None) -> DeltaMessage: ...

    async def fetch_projects(self, data_path: str | None = None) -> list[ProjectStat]: ...

    async def fetch_overall_stats(self, data_path: str | None = None) -> OverallStats: ...

    async def fetch_daily_usage(self, data_path: str | None = None,
                                start_date: str | None = None,
                                end_date: str | None = None) -> list[DailyStat]: ...

    async def check_data_directory(self, data_path: str | None = None) -> bool: ...

    def subscribe(self, data_path: str | None = None) -> AsyncIterator[str]:
        """Yield the raw JSON payload of each pushed delta, in send order."""
        ...

    async def aclose(self) -> None: ...


def _params(data_path: str | None, **extra) -> dict:
    params = {k: v for k, v in extra.items() if v is not None}
    if data_path:
        params["dataPath"] = data_path
    return params


async def iter_sse(lines: AsyncIterator[str], event: str = PUSH_EVENT) -> AsyncIterator[str]:
    """Yield ``data`` for each server-sent event named ``event``.

    Unnamed events are accepted too. Multi-line data is joined with ``\\n``.
    """
    name = None
    data: list[str] = []
    async for line in lines:
        if line == "":
            if data and name in (None, event):
                yield "\n".join(data)
            name = None
            data = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            name = value
        elif field == "data":
            data.append(value)
    if data and name in (None, event):
        yield "\n".join(data)


class HttpBackend:
    def __init__(self, base_url: str = BACKEND_URL, timeout: float = REQUEST_TIMEOUT_S,
                 transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def _get(self, path: str, params: dict):
        try:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise BackendError(f"{path} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise BackendError(f"{path} failed: {e}") from e
        except ValueError as e:
            raise BackendError(f"{path} returned malformed JSON") from e

    @staticmethod
    def _decode(path: str, parse, body):
        try:
            return parse(body)
        except ValueError as e:
            raise BackendError(f"{path} returned unexpected data: {e}") from e

    async def fetch_snapshot(self, data_path=None, force_full=False) -> UsageSnapshot:
        body = await self._get("/api/usage", _params(data_path, forceFull=str(bool(force_full)).lower()))
        return self._decode("/api/usage", UsageSnapshot.model_validate, body)

    async def fetch_delta(self, data_path=None) -> DeltaMessage:
        body = await self._get("/api/usage/delta", _params(data_path))
        return self._decode("/api/usage/delta", DeltaMessage.model_validate, body)

    async def fetch_projects(self, data_path=None) -> list[ProjectStat]:
        body = await self._get("/api/projects", _params(data_path))
        return self._decode("/api/projects", _PROJECTS.validate_python, body)

    async def fetch_overall_stats(self, data_path=None) -> OverallStats:
        body = await self._get("/api/overall", _params(data_path))
        return self._decode("/api/overall", OverallStats.model_validate, body)

    async def fetch_daily_usage(self, data_path=None, start_date=None, end_date=None) -> list[DailyStat]:
        body = await self._get("/api/daily", _params(data_path, startDate=start_date, endDate=end_date))
        return self._decode("/api/daily", _DAILY.validate_python, body)

    async def check_data_directory(self, data_path=None) -> bool:
        body = await self._get("/api/data-directory", _params(data_path))
        if not isinstance(body, dict):
            raise BackendError("/api/data-directory returned unexpected data")
        return bool(body.get("exists"))

    async def subscribe(self, data_path=None) -> AsyncIterator[str]:
        timeout = httpx.Timeout(self._client.timeout.connect, read=None)
        try:
            async with self._client.stream("GET", "/api/events", params=_params(data_path),
                                           timeout=timeout,
                                           headers={"Accept": "text/event-stream"}) as resp:
                resp.raise_for_status()
                log.info("Subscribed to %s", resp.url)
                async for payload in iter_sse(resp.aiter_lines()):
                    yield payload
        except httpx.HTTPStatusError as e:
            raise BackendError(f"/api/events returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise BackendError(f"/api/events failed: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
