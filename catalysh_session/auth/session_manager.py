"""
SessionManager — Bearer token lifecycle.

States: Absent → Valid → Expired → (re-authenticate) → Valid

A cached token is Valid while ``obtained_at <= now < expires_at``; that
check is a local clock comparison and performs no I/O. Otherwise the
password is read from the credential vault and exchanged for a new token
at the controller's token endpoint using HTTP Basic authentication.

Failure handling:
- 401 from the token endpoint → ``AuthenticationFailed`` (terminal)
- 5xx, connection errors, timeouts → ``TransportError``
- any other non-2xx → ``RequestFailed``
The cached token is left untouched on every failure.
"""
import time
import logging
from typing import Callable, Optional

import aiohttp

from .token_store import SessionToken, TokenStore
from ..conf import TOKEN_PATH, TOKEN_TTL
from ..config import ClientConfig
from ..exceptions import AuthenticationFailed, RequestFailed, TransportError
from ..http import fetch
from ..vault.credential_vault import CredentialVault

logger = logging.getLogger("catalysh.auth")


class SessionManager:
    """Hands out valid bearer tokens, re-authenticating when needed.

    Args:
        config: Controller endpoint and username.
        vault: Credential vault holding the password for ``config.username``.
        token_store: Cache for the single session token.
        http: aiohttp session used for the token request.
        ttl: Token lifetime in seconds.
        clock: Returns the current epoch time in seconds.
    """

    def __init__(
        self,
        config: ClientConfig,
        vault: CredentialVault,
        token_store: TokenStore,
        http: aiohttp.ClientSession,
        ttl: int = TOKEN_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._vault = vault
        self._store = token_store
        self._http = http
        self._ttl = ttl
        self._clock = clock

    @property
    def token_store(self) -> TokenStore:
        return self._store

    def now(self) -> int:
        return int(self._clock())

    async def cached_token(self) -> Optional[SessionToken]:
        """Return the cached token if it is still valid."""
        token = await self._store.load()
        if token is not None and token.is_valid(self.now()):
            return token
        return None

    async def get_valid_token(self) -> SessionToken:
        """Return a valid token, authenticating only if none is cached."""
        token = await self.cached_token()
        if token is not None:
            return token
        return await self.refresh()

    async def invalidate(self) -> None:
        """Forget the cached token."""
        await self._store.clear()
        logger.debug("Session token invalidated")

    async def refresh(self) -> SessionToken:
        """Authenticate against the token endpoint and cache the result.

        Bypasses the cached token.

        Raises:
            NotFound, DecryptionFailed: From the credential vault.
            AuthenticationFailed: Credentials rejected (401).
            TransportError: Network failure, timeout or 5xx.
            RequestFailed: Any other non-success status or malformed reply.
        """
        username = self.config.username
        password = await self._vault.retrieve(username)
        url = self.config.url(TOKEN_PATH)
        logger.info("Authenticating %s at %s", username, self.config.endpoint_url)

        reply = await fetch(
            self._http,
            "POST",
            url,
            auth=aiohttp.BasicAuth(username, password, encoding="utf-8"),
        )
        if reply.status == 401:
            raise AuthenticationFailed()
        if reply.status >= 500:
            raise TransportError(
                f"Authentication failed with status: {reply.status} - "
                f"{reply.reason or 'Unknown error'}"
            )
        if not reply.ok:
            raise RequestFailed(
                reply.status,
                reply.reason,
                url=url,
                message=(
                    f"Authentication failed with status: {reply.status} - "
                    f"{reply.reason or 'Unknown error'}"
                ),
            )

        payload = reply.json()
        value = payload.get("Token") if isinstance(payload, dict) else None
        if not isinstance(value, str) or not value:
            raise RequestFailed(
                reply.status,
                reply.reason,
                url=url,
                message="Token endpoint response has no 'Token' field",
            )

        token = SessionToken.issue(value, self.now(), self._ttl)
        await self._store.save(token)
        logger.info("Obtained session token for %s, expires_at=%d", username, token.expires_at)
        return token
