"""
HTTP client for the hosted backend-as-a-service.

Tables are served PostgREST-style under ``/rest/v1/<table>`` and auth under
``/auth/v1``. Every request carries the project's anon key; requests made
through ``with_auth`` also carry the user's access token so the backend's
row-level security applies.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from carebook import config
from carebook.database import AuthSession, AuthUser, Filters
from carebook.errors import AuthError, BackendError
from carebook.models import Table

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"
AUTH_PREFIX = "/auth/v1"


def encode_filter(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    if isinstance(value, Iterable) and not isinstance(value, str):
        return f"in.({','.join(str(v) for v in value)})"
    return f"eq.{value}"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


class RemoteBackend:
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        base_url = base_url or config.BACKEND_URL
        api_key = api_key or config.BACKEND_ANON_KEY
        if not base_url or not api_key:
            raise ValueError("BACKEND_URL and BACKEND_ANON_KEY must be set for the remote backend")
        self._base_url = base_url
        self._api_key = api_key
        self._access_token = access_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=config.HTTP_TIMEOUT_SECONDS
        )

    def with_auth(self, access_token: str) -> "RemoteBackend":
        # scoped handles share the connection pool with the root client
        return RemoteBackend(
            self._base_url,
            self._api_key,
            access_token=access_token,
            client=self._client,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, bearer: str | None = None) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {bearer or self._access_token or self._api_key}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        bearer: str | None = None,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        request_headers = self._headers(bearer)
        request_headers.update(headers or {})
        try:
            response = await self._client.request(
                method, path, headers=request_headers, **kwargs
            )
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.warning(f"{method} {path} -> HTTP {response.status_code}: {message}")
            if path.startswith(AUTH_PREFIX) and response.status_code in (400, 401, 403, 422):
                raise AuthError(message)
            raise BackendError(message)
        return response

    # tables

    async def select(
        self,
        table: Table,
        *,
        filters: Filters | None = None,
        order: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        params: list[tuple[str, str]] = [("select", "*")]
        params += [(column, encode_filter(v)) for column, v in (filters or {}).items()]
        if order is not None:
            direction = "desc" if descending else "asc"
            params.append(("order", f"{order}.{direction}.nullslast"))
        response = await self._request("GET", f"{REST_PREFIX}/{table}", params=params)
        return response.json()

    async def insert(self, table: Table, row: Mapping[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"{REST_PREFIX}/{table}",
            json=dict(row),
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        if not rows:
            raise BackendError(f"insert into {table} returned no row")
        return rows[0]

    async def update(
        self, table: Table, values: Mapping[str, Any], *, filters: Filters
    ) -> list[dict[str, Any]]:
        params = [(column, encode_filter(v)) for column, v in filters.items()]
        response = await self._request(
            "PATCH",
            f"{REST_PREFIX}/{table}",
            params=params,
            json=dict(values),
            headers={"Prefer": "return=representation"},
        )
        return response.json()

    # auth

    async def sign_up(
        self, email: str, password: str, metadata: Mapping[str, Any] | None = None
    ) -> AuthSession:
        response = await self._request(
            "POST",
            f"{AUTH_PREFIX}/signup",
            json={"email": email, "password": password, "data": dict(metadata or {})},
        )
        body = response.json()
        if not body.get("access_token"):
            # projects with email confirmation disabled hand back a session
            # directly; otherwise try a password grant right away
            return await self.sign_in(email, password)
        return self._session(body)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        response = await self._request(
            "POST",
            f"{AUTH_PREFIX}/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._session(response.json())

    async def get_user(self, access_token: str) -> AuthUser:
        response = await self._request("GET", f"{AUTH_PREFIX}/user", bearer=access_token)
        body = response.json()
        return AuthUser(id=body["id"], email=body.get("email", ""))

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", f"{AUTH_PREFIX}/logout", bearer=access_token)

    @staticmethod
    def _session(body: Mapping[str, Any]) -> AuthSession:
        user = body.get("user") or {}
        if not body.get("access_token") or not user.get("id"):
            raise AuthError("Auth response did not include a session")
        return AuthSession(
            access_token=body["access_token"],
            user=AuthUser(id=user["id"], email=user.get("email", "")),
        )
