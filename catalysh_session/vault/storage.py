"""
Vault Storage — SQLite database shared by the credential vault and the
token cache.

Each operation opens its own connection and runs inside one
``BEGIN IMMEDIATE`` transaction. The database runs in WAL mode, so several
shells running the tool at once are serialised by SQLite's single-writer
lock instead of an in-process lock.
"""
import os
import sqlite3
import logging
from pathlib import Path
from typing import AsyncIterator, Union
from contextlib import asynccontextmanager

import aiosqlite

from ..conf import CREDENTIALS_DB
from ..exceptions import VaultIO

logger = logging.getLogger("catalysh.vault")

_DATABASE_SUFFIXES = ("", "-wal", "-shm")

_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA foreign_keys=ON",
    "PRAGMA secure_delete=ON",
)

_CREATE_CREDENTIALS = """
CREATE TABLE IF NOT EXISTS credentials (
    id TEXT PRIMARY KEY,
    encrypted_data BLOB NOT NULL,
    nonce BLOB NOT NULL,
    salt BLOB NOT NULL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""

_CREATE_TOKEN = """
CREATE TABLE IF NOT EXISTS token (
    id INTEGER PRIMARY KEY,
    value TEXT NOT NULL,
    obtained_at INTEGER NOT NULL,
    expires_at INTEGER NOT NULL
)
"""


class VaultDatabase:
    """Connection factory for the credentials database.

    Args:
        path: Database file; defaults to ``CREDENTIALS_DB``.
        busy_timeout: Milliseconds to wait for another process's write lock.
    """

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        busy_timeout: int = 5000,
    ):
        self.path = Path(path or CREDENTIALS_DB)
        self.busy_timeout = busy_timeout

    def __repr__(self) -> str:
        return f"<VaultDatabase path={self.path}>"

    def _ensure_directory(self) -> None:
        directory = self.path.parent
        try:
            if not directory.exists():
                directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as err:
            raise VaultIO(
                f"Cannot create credentials directory {directory}: {err}"
            ) from err

    def _restrict_permissions(self) -> None:
        # WAL side files created later inherit the database file mode.
        for suffix in _DATABASE_SUFFIXES:
            target = Path(f"{self.path}{suffix}")
            if target.exists():
                os.chmod(target, 0o600)

    async def _prepare(self, conn: aiosqlite.Connection) -> None:
        for pragma in _PRAGMAS:
            await conn.execute(pragma)
        await conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout)}")
        await conn.execute(_CREATE_CREDENTIALS)
        await conn.execute(_CREATE_TOKEN)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection in autocommit mode with the schema in place.

        Raises:
            VaultIO: On any SQLite error.
        """
        self._ensure_directory()
        fresh = not self.path.exists()
        try:
            async with aiosqlite.connect(
                str(self.path), isolation_level=None
            ) as conn:
                conn.row_factory = aiosqlite.Row
                await self._prepare(conn)
                if fresh:
                    self._restrict_permissions()
                    logger.debug("Created credentials database %s", self.path)
                yield conn
        except sqlite3.Error as err:
            raise VaultIO(
                f"Credentials database error ({self.path}): {err}"
            ) from err

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the enclosed statements in one exclusive write transaction.

        Commits on normal exit and rolls back on any exception, which is
        re-raised unchanged (SQLite errors as ``VaultIO``).
        """
        async with self.acquire() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            await conn.execute("COMMIT")
