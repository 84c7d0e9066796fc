"""
Session — wires the vault, the token cache and the executor together.

The command layer opens one ``Session`` per invocation::

    async with Session(load_config()) as session:
        devices = await session.executor.get_paginated(
            "/dna/intent/api/v1/network-device"
        )

``setup_credentials`` and ``reset_credentials`` back the first-run setup
and the ``app config reset-credentials`` command.
"""
import time
import logging
from pathlib import Path
from typing import Callable, Optional, Union

import aiohttp

from .auth.executor import RequestExecutor
from .auth.session_manager import SessionManager
from .auth.token_store import SQLiteTokenStore, TokenStore
from .conf import REQUEST_TIMEOUT, TOKEN_TTL
from .config import ClientConfig
from .http import client_session
from .vault.credential_vault import CredentialVault
from .vault.identity import MachineIdentity
from .vault.storage import VaultDatabase

logger = logging.getLogger("catalysh.auth")


class Session:
    """One authenticated conversation with the controller.

    Args:
        config: Controller endpoint, username and TLS settings.
        db_path: Credentials database; defaults to ``CREDENTIALS_DB``.
        identity: Machine identity strategy; defaults to the host's.
        token_store: Token cache; defaults to the ``token`` table of the
            credentials database.
        ttl: Token lifetime in seconds.
        timeout: Total timeout for each HTTP request.
        clock: Epoch-seconds clock used for token validity.
    """

    def __init__(
        self,
        config: ClientConfig,
        db_path: Union[str, Path, None] = None,
        identity: Optional[MachineIdentity] = None,
        token_store: Optional[TokenStore] = None,
        ttl: int = TOKEN_TTL,
        timeout: float = REQUEST_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        database = VaultDatabase(db_path)
        self.vault = CredentialVault(database, identity=identity)
        self.token_store = token_store or SQLiteTokenStore(database)
        self._ttl = ttl
        self._timeout = timeout
        self._clock = clock
        self._http: Optional[aiohttp.ClientSession] = None
        self.sessions: Optional[SessionManager] = None
        self.executor: Optional[RequestExecutor] = None

    async def open(self) -> "Session":
        if self._http is not None:
            return self
        self._http = client_session(self.config, timeout=self._timeout)
        self.sessions = SessionManager(
            self.config,
            self.vault,
            self.token_store,
            self._http,
            ttl=self._ttl,
            clock=self._clock,
        )
        self.executor = RequestExecutor(self.sessions, self._http)
        return self

    async def close(self) -> None:
        if self._http is not None:
            await self._http.close()
        self._http = None
        self.sessions = None
        self.executor = None

    async def __aenter__(self) -> "Session":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


async def setup_credentials(
    vault: CredentialVault, username: str, password: str
) -> None:
    """Store the password entered during first-run setup."""
    await vault.store(username, password)
    logger.info("Credentials stored for %s", username)


async def reset_credentials(
    vault: CredentialVault,
    token_store: TokenStore,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> None:
    """Forget every stored credential and the cached token.

    When ``username`` and ``password`` are given, the new password is
    stored afterwards.
    """
    removed = await vault.clear()
    await token_store.clear()
    logger.info("Credentials reset, %d record(s) removed", removed)
    if username and password is not None:
        await setup_credentials(vault, username, password)
