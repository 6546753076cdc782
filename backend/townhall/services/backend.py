"""
Client for the hosted backend (PostgREST style table API + RPC functions).

All persistence, vote accounting and role checks live behind this API. The
client forwards the caller's access token on every request so the backend's
row-level security decides what each viewer may read and write.
"""
from __future__ import annotations
import json
from dataclasses import dataclass
from typing import Any, Iterable, NamedTuple, Sequence

import httpx
import structlog

from townhall.config import settings

log = structlog.get_logger()


class BackendError(RuntimeError):
    """The backend answered with an error status."""

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class BackendUnreachable(BackendError):
    """Transport failure: connection refused, DNS, timeout."""


class Filter(NamedTuple):
    column: str
    op: str
    value: Any

    def encode(self) -> tuple[str, str]:
        value = self.value
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif value is None:
            return self.column, f"{self.op}.null"
        return self.column, f"{self.op}.{value}"


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def gt(column: str, value: Any) -> Filter:
    return Filter(column, "gt", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


@dataclass(frozen=True)
class Order:
    column: str
    descending: bool = True

    def encode(self) -> str:
        return f"{self.column}.{'desc' if self.descending else 'asc'}"


def _params(select: str | None, filters: Iterable[Filter], order: Sequence[Order] | Order | None, limit: int | None) -> list[tuple[str, str]]:
    params: list[tuple[str, str]] = []
    if select:
        params.append(("select", select))
    params.extend(f.encode() for f in filters)
    if order is not None:
        orders = [order] if isinstance(order, Order) else list(order)
        if orders:
            params.append(("order", ",".join(o.encode() for o in orders)))
    if limit is not None:
        params.append(("limit", str(limit)))
    return params


def _total_from_content_range(header: str | None) -> int:
    # "0-24/3573" or "*/0"
    if not header or "/" not in header:
        return 0
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


class BackendClient:
    """
    Thin async wrapper over the table + RPC API.

    One `httpx.AsyncClient` is shared process-wide; `with_token()` returns a
    view bound to a caller's access token without opening new connections.
    """

    def __init__(self, http: httpx.AsyncClient, api_key: str | None = None, access_token: str | None = None):
        self._http = http
        self.api_key = settings.backend_api_key if api_key is None else api_key
        self.access_token = access_token

    @classmethod
    def create_http(cls, base_url: str | None = None, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=(base_url or settings.backend_url).rstrip("/"),
            timeout=httpx.Timeout(timeout or settings.backend_timeout_seconds),
            headers={"X-Client-Info": settings.app_name},
            transport=transport,
        )

    def with_token(self, access_token: str | None) -> "BackendClient":
        return BackendClient(self._http, api_key=self.api_key, access_token=access_token)

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        bearer = self.access_token or self.api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        if extra:
            headers.update(extra)
        return headers

    async def _request(self, method: str, path: str, *, params=None, body: Any = None, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            response = await self._http.request(
                method,
                path,
                params=params,
                content=json.dumps(body, default=str) if body is not None else None,
                headers=self._headers(headers),
            )
        except httpx.HTTPError as exc:
            log.warning("backend_unreachable", method=method, path=path, error=str(exc))
            raise BackendUnreachable(f"backend request failed: {exc}") from exc

        if response.status_code >= 400:
            code = message = None
            try:
                payload = response.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                code = payload.get("code")
                message = payload.get("message") or payload.get("error")
            log.warning(
                "backend_request_failed",
                method=method, path=path, status_code=response.status_code, code=code,
            )
            raise BackendError(
                message or f"backend responded with {response.status_code}",
                status_code=response.status_code,
                code=code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            log.warning("backend_bad_payload", path=response.request.url.path, status_code=response.status_code)
            raise BackendError(
                f"backend sent an unreadable response ({response.status_code})",
                status_code=response.status_code,
            ) from exc

    # ---------- table interface ----------

    async def fetch(
        self,
        table: str,
        *,
        select: str = "*",
        filters: Iterable[Filter] = (),
        order: Sequence[Order] | Order | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        r = await self._request("GET", f"/rest/v1/{table}", params=_params(select, filters, order, limit))
        return self._json(r) or []

    async def fetch_one(self, table: str, *, select: str = "*", filters: Iterable[Filter] = ()) -> dict | None:
        """First matching row or None (no error when nothing matches)."""
        rows = await self.fetch(table, select=select, filters=filters, limit=1)
        return rows[0] if rows else None

    async def count(self, table: str, *, filters: Iterable[Filter] = ()) -> int:
        r = await self._request(
            "HEAD",
            f"/rest/v1/{table}",
            params=_params("*", filters, None, None),
            headers={"Prefer": "count=exact"},
        )
        return _total_from_content_range(r.headers.get("content-range"))

    async def insert(self, table: str, record: dict, *, select: str = "*") -> dict:
        r = await self._request(
            "POST",
            f"/rest/v1/{table}",
            params=[("select", select)],
            body=[record],
            headers={"Prefer": "return=representation"},
        )
        rows = self._json(r) or []
        if not rows:
            raise BackendError(f"insert into {table} returned no row", status_code=r.status_code)
        return rows[0]

    async def update(self, table: str, patch: dict, *, filters: Iterable[Filter], select: str = "*") -> dict | None:
        """Patched row, or None when the filter (e.g. id AND owner) matched nothing."""
        r = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=_params(select, filters, None, None),
            body=patch,
            headers={"Prefer": "return=representation"},
        )
        rows = self._json(r) or []
        return rows[0] if rows else None

    async def delete(self, table: str, *, filters: Iterable[Filter]) -> int:
        """Number of rows removed."""
        r = await self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=_params("id", filters, None, None),
            headers={"Prefer": "return=representation"},
        )
        return len(self._json(r) or [])

    # ---------- RPC interface ----------

    async def rpc(self, function: str, params: dict | None = None) -> Any:
        r = await self._request("POST", f"/rest/v1/rpc/{function}", body=params or {})
        if not r.content:
            return None
        return self._json(r)
