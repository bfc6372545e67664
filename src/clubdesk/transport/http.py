"""
REST / RPC / storage HTTP client for the ClubDesk backend.

Tables live under /rest/v1/{table}, remote procedures under /rest/v1/rpc/{fn},
object storage under /storage/v1/object/{bucket}/{path}.
"""

from typing import Any, Optional, Union

import httpx

from clubdesk.errors import BackendError, ConnectionError

DEFAULT_BASE_URL = "http://localhost:54321"
USER_AGENT = "clubdesk-sdk/0.1.0"

Filters = dict[str, str]
Rows = list[dict[str, Any]]


def eq(value: Any) -> str:
    """PostgREST equality operator: ``{"id": eq(5)}`` -> ``id=eq.5``."""
    if isinstance(value, bool):
        value = "true" if value else "false"
    return f"eq.{value}"


def in_(values: list[Any]) -> str:
    return "in.(" + ",".join(str(v) for v in values) + ")"


def ilike(text: str) -> str:
    """Case-insensitive substring match: ``{"content": ilike("goal")}`` -> ``content=ilike.*goal*``."""
    return f"ilike.*{text}*"


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str = "",
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool = True) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._api_key:
            headers["apikey"] = self._api_key
        bearer = self._token if authenticated and self._token else self._api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error_description") or body.get("error") or resp.text[:200]
            code = str(body.get("code") or "http_error")
            details = {k: body[k] for k in ("details", "hint") if body.get(k)}
            raise BackendError(str(message), code=code, status=resp.status_code, details=details or None)
        raise BackendError(f"HTTP {resp.status_code}: {resp.text[:200]}", code="http_error", status=resp.status_code)

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        return resp.json()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        content: Optional[bytes] = None,
        headers: Optional[dict[str, str]] = None,
        authenticated: bool = True,
    ) -> Any:
        merged = self._auth_headers(authenticated)
        if headers:
            merged.update(headers)
        try:
            resp = await self._client.request(method, path, params=params, json=json, content=content, headers=merged)
        except httpx.HTTPError as e:
            raise ConnectionError(f"{method} {path} failed: {e}") from e
        self._raise_for_status(resp)
        return self._json(resp)

    # Tables

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Rows:
        params: dict[str, Any] = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        return await self.request("GET", f"/rest/v1/{table}", params=params) or []

    async def count(self, table: str, filters: Optional[Filters] = None) -> int:
        merged = self._auth_headers()
        merged["Prefer"] = "count=exact"
        params: dict[str, Any] = {"select": "id"}
        params.update(filters or {})
        try:
            resp = await self._client.head(f"/rest/v1/{table}", params=params, headers=merged)
        except httpx.HTTPError as e:
            raise ConnectionError(f"HEAD /rest/v1/{table} failed: {e}") from e
        self._raise_for_status(resp)
        content_range = resp.headers.get("content-range", "")
        total = content_range.rpartition("/")[2]
        return int(total) if total.isdigit() else 0

    async def insert(self, table: str, rows: Union[dict[str, Any], Rows], upsert: bool = False) -> Rows:
        prefer = "return=representation"
        if upsert:
            prefer += ",resolution=merge-duplicates"
        return await self.request("POST", f"/rest/v1/{table}", json=rows, headers={"Prefer": prefer}) or []

    async def update(self, table: str, values: dict[str, Any], filters: Filters) -> Rows:
        if not filters:
            raise ValueError("update() requires at least one filter")
        return await self.request(
            "PATCH", f"/rest/v1/{table}", params=filters, json=values,
            headers={"Prefer": "return=representation"},
        ) or []

    async def delete(self, table: str, filters: Filters) -> Rows:
        if not filters:
            raise ValueError("delete() requires at least one filter")
        return await self.request(
            "DELETE", f"/rest/v1/{table}", params=filters,
            headers={"Prefer": "return=representation"},
        ) or []

    # Remote procedures

    async def rpc(self, function: str, args: Optional[dict[str, Any]] = None) -> Any:
        """Call a remote procedure.

        Procedures that answer with ``{"success": false, "error": ...}`` are
        turned into BackendError with the error text unchanged.
        """
        result = await self.request("POST", f"/rest/v1/rpc/{function}", json=args or {})
        if isinstance(result, dict) and result.get("success") is False:
            raise BackendError(str(result.get("error") or f"{function} failed"), code="rpc_error")
        return result

    # Storage

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Upload raw bytes and return the object's public URL."""
        await self.request(
            "POST", f"/storage/v1/object/{bucket}/{path}", content=data,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{bucket}/{path}"

    async def close(self) -> None:
        await self._client.aclose()
