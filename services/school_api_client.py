"""HTTP client for the school REST API.

Wraps ``httpx.AsyncClient`` with:
- base URL + API prefix construction
- Bearer token auth (service token, or a per-session token via :meth:`bind`)
- uniform failure normalization: non-2xx → :class:`ApiHttpError`,
  transport errors → :class:`NetworkFailure`, undecodable 2xx bodies →
  :class:`ResponseParseError`
- request timing logs
- connection-pool lifecycle tied to FastAPI lifespan

Requests are never retried: a failure is reported once and the user decides
whether to try again.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from config.settings import get_settings
from errors.exceptions import ApiHttpError, NetworkFailure, ResponseParseError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_client: SchoolApiClient | None = None


def server_message_from(response: httpx.Response) -> str | None:
    """Extract the ``message`` field of an error body, if there is one."""
    if not response.content:
        return None
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


class SchoolApiClient:
    """Async HTTP client for the school REST API."""

    def __init__(self) -> None:
        settings = get_settings()
        self._base_url = f"{settings.school_api_base_url.rstrip('/')}{settings.school_api_prefix}"
        self._timeout = settings.school_api_timeout
        self._access_token = settings.school_api_access_token
        self._http: httpx.AsyncClient | None = None

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Create the underlying ``httpx.AsyncClient`` connection pool."""
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=self._auth_headers(self._access_token),
            limits=httpx.Limits(
                max_connections=30,
                max_keepalive_connections=15,
                keepalive_expiry=30,
            ),
        )
        logger.info("SchoolApiClient started — base_url=%s", self._base_url)

    async def close(self) -> None:
        """Gracefully close the connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("SchoolApiClient closed")

    # -- public API ----------------------------------------------------------

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        return await self.request("GET", path, params=params, headers=headers)

    def bind(self, access_token: str) -> BoundApiClient:
        """Return a view of this client that authenticates as one session."""
        return BoundApiClient(self, access_token)

    # -- request -------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Send exactly one HTTP request and return the decoded JSON body.

        Raises:
            NetworkFailure: the request never completed.
            ApiHttpError: the API answered with a non-2xx status.
            ResponseParseError: a 2xx body that is not valid JSON.
        """
        client = self._ensure_started()
        t0 = time.monotonic()
        try:
            response = await client.request(
                method,
                path,
                params=params,
                json=json_body,
                headers=headers,
            )
        except httpx.TransportError as exc:
            elapsed_ms = (time.monotonic() - t0) * 1000
            logger.warning(
                "%s %s → network error (%.0fms): %s",
                method, path, elapsed_ms, exc,
            )
            raise NetworkFailure(method, path, str(exc) or type(exc).__name__) from exc

        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "%s %s → %d (%.0fms)",
            method, path, response.status_code, elapsed_ms,
        )

        if not 200 <= response.status_code < 300:
            server_message = server_message_from(response)
            raise ApiHttpError(
                status_code=response.status_code,
                message=server_message or f"HTTP {response.status_code}",
                url=str(response.url),
                server_message=server_message,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
            logger.warning("%s %s → undecodable body", method, path)
            raise ResponseParseError(url=str(response.url)) from exc

    # -- internals -----------------------------------------------------------

    @staticmethod
    def _auth_headers(access_token: str) -> dict[str, str]:
        headers: dict[str, str] = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _ensure_started(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("SchoolApiClient not started — call await client.start() first")
        return self._http


class BoundApiClient:
    """Per-session view of :class:`SchoolApiClient` sharing its connection pool."""

    def __init__(self, client: SchoolApiClient, access_token: str) -> None:
        self._client = client
        self._headers = SchoolApiClient._auth_headers(access_token)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._client.request("GET", path, params=params, headers=self._headers)

    async def request(self, method: str, path: str, json_body: Any = None) -> Any:
        return await self._client.request(method, path, json_body=json_body, headers=self._headers)


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------

def get_school_api_client() -> SchoolApiClient:
    """Return the module-level SchoolApiClient singleton (create if needed)."""
    global _client
    if _client is None:
        _client = SchoolApiClient()
    return _client
