"""
RequestExecutor — Authenticated GET calls with bounded 401 recovery.

Each request carries the current bearer token in ``X-Auth-Token``. When the
controller answers 401 (token revoked server-side, or expired early), the
cached token is dropped, a fresh one is obtained and the same request is
sent once more. A second 401 right after re-authenticating is reported as
``AuthenticationFailed`` instead of looping.

List endpoints are walked with ``offset``/``limit`` until a page comes back
empty; every page goes through the same recovery logic.
"""
import logging
from typing import Any, Mapping, Optional

import aiohttp

from .session_manager import SessionManager
from .token_store import SessionToken
from ..conf import AUTH_HEADER, PAGE_SIZE, PAGE_START_OFFSET
from ..exceptions import AuthenticationFailed, RequestFailed
from ..http import Reply, fetch

logger = logging.getLogger("catalysh.auth")

# re-authentications allowed per request
MAX_AUTH_RECOVERIES = 1


class RequestExecutor:
    """Runs authenticated calls against the controller.

    Args:
        sessions: Source of valid bearer tokens.
        http: aiohttp session for resource calls.
    """

    def __init__(self, sessions: SessionManager, http: aiohttp.ClientSession):
        self._sessions = sessions
        self._http = http
        self._token: Optional[SessionToken] = None

    async def _current_token(self) -> SessionToken:
        if self._token is None or not self._token.is_valid(self._sessions.now()):
            self._token = await self._sessions.get_valid_token()
        return self._token

    async def _send(
        self,
        url: str,
        params: Optional[Mapping[str, Any]],
        headers: Optional[Mapping[str, str]],
    ) -> Reply:
        token = await self._current_token()
        recoveries = 0
        while True:
            request_headers = {"Accept": "application/json"}
            if headers:
                request_headers.update(headers)
            request_headers[AUTH_HEADER] = token.value
            reply = await fetch(
                self._http, "GET", url, params=params, headers=request_headers,
            )
            if reply.status != 401:
                return reply
            if recoveries >= MAX_AUTH_RECOVERIES:
                raise AuthenticationFailed(
                    f"Request to {url} was rejected again after "
                    f"re-authenticating (401)."
                )
            recoveries += 1
            logger.warning("Token rejected by %s, re-authenticating", url)
            self._token = None
            await self._sessions.invalidate()
            token = self._token = await self._sessions.refresh()

    async def get(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """GET a resource and return its decoded JSON body.

        Args:
            path: Path relative to the endpoint, or an absolute URL.
            params: Query parameters.
            headers: Extra request headers (e.g. ``entity_type``).

        Raises:
            AuthenticationFailed: Rejected again after re-authenticating.
            RequestFailed: Any other non-success status.
            TransportError: Network failure or timeout.
        """
        url = self._sessions.config.url(path)
        reply = await self._send(url, params, headers)
        if not reply.ok:
            raise RequestFailed(reply.status, reply.reason, url=url)
        logger.debug("GET %s -> %d", url, reply.status)
        return reply.json()

    async def get_paginated(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        page_size: int = PAGE_SIZE,
        start_offset: int = PAGE_START_OFFSET,
    ) -> list:
        """Fetch every page of a list endpoint.

        Pages are requested with increasing ``offset`` until one returns an
        empty ``response`` list. Items are returned in request order.
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")
        items: list = []
        offset = start_offset
        while True:
            query = dict(params or {})
            query.update(offset=offset, limit=page_size)
            payload = await self.get(path, params=query, headers=headers)
            page = payload.get("response") if isinstance(payload, dict) else None
            if not isinstance(page, list):
                raise RequestFailed(
                    200,
                    url=self._sessions.config.url(path),
                    message=f"List response from {path} has no 'response' array",
                )
            if not page:
                break
            items.extend(page)
            offset += page_size
        logger.debug("Fetched %d item(s) from %s", len(items), path)
        return items
