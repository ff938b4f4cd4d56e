"""Thin authenticated HTTP client for Supabase REST, RPC and edge functions."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from safeping.adapters.api_request_logger import log_api_request
from safeping.domain.errors import RemoteWriteError

if TYPE_CHECKING:
    from aiohttp import ClientSession

logger = logging.getLogger(__name__)


def _error_message(body: str, status: int) -> str:
    """Extract a readable message from a PostgREST or edge function error body."""
    try:
        data = json.loads(body) if body else None
    except ValueError:
        return body[:200] or f"HTTP {status}"
    if isinstance(data, dict):
        for key in ("message", "error", "msg", "error_description"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {status}"


class SupabaseHttpClient:
    """Sends requests to a Supabase project and translates failures into domain errors.

    Transport failures (connection refused, reset, DNS) raise ``RemoteWriteError``
    without a status code; HTTP error responses raise it with the status code, so
    callers can tell retryable from permanent failures.
    """

    def __init__(self, session: ClientSession, base_url: str, anon_key: str) -> None:
        """Initialize the client.

        Args:
            session: Shared aiohttp session.
            base_url: Project URL, e.g. ``https://xyz.supabase.co``.
            anon_key: Public API key sent with every request.
        """
        self._session = session
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key

    def build_headers(
        self, access_token: str | None = None, extra: dict[str, str] | None = None
    ) -> dict[str, str]:
        """Headers for one request, authenticated as the given user if a token is set."""
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        params: dict[str, str] | None = None,
        payload: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (None when empty).

        Raises:
            RemoteWriteError: On transport failures and non-2xx responses.
        """
        url = f"{self.base_url}{path}"
        request_headers = self.build_headers(access_token, headers)
        log_api_request(method, url, params=params, headers=request_headers, payload=payload)

        try:
            async with self._session.request(
                method, url, params=params, json=payload, headers=request_headers
            ) as response:
                body = await response.text()
                if response.status >= 400:
                    raise RemoteWriteError(
                        f"{method} {path} failed: {_error_message(body, response.status)}",
                        status_code=response.status,
                    )
        except aiohttp.ClientError as e:
            raise RemoteWriteError(f"{method} {path} transport error: {e}") from e

        if not body:
            return None
        try:
            return json.loads(body)
        except ValueError:
            logger.debug(f"Non-JSON response from {method} {path}")
            return None
