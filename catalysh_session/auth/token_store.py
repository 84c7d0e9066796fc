"""
Token Store — Persistence for the single cached session token.

``SessionManager`` only talks to the ``TokenStore`` interface, so tests and
embedders can swap the SQLite-backed cache for ``MemoryTokenStore``.

Security Note:
    Token values are bearer credentials. Never log them.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator

from ..vault.storage import VaultDatabase

logger = logging.getLogger("catalysh.auth")

_DELETE_TOKENS = "DELETE FROM token"

_INSERT_TOKEN = """
INSERT INTO token (value, obtained_at, expires_at)
VALUES (?, ?, ?)
"""

_SELECT_TOKEN = """
SELECT value, obtained_at, expires_at
FROM token
ORDER BY id DESC
LIMIT 1
"""


class SessionToken(BaseModel):
    """Bearer token with its validity window, in epoch seconds."""

    model_config = ConfigDict(frozen=True)

    value: str
    obtained_at: int
    expires_at: int

    @model_validator(mode="after")
    def validate_window(self) -> "SessionToken":
        if self.expires_at < self.obtained_at:
            raise ValueError("expires_at cannot precede obtained_at")
        return self

    @classmethod
    def issue(cls, value: str, now: int, ttl: int) -> "SessionToken":
        """Build a token obtained at ``now`` and valid for ``ttl`` seconds."""
        return cls(value=value, obtained_at=now, expires_at=now + ttl)

    def is_valid(self, now: float) -> bool:
        """True while ``obtained_at <= now < expires_at``."""
        return self.obtained_at <= now < self.expires_at

    def __repr__(self) -> str:
        return (
            f"SessionToken(obtained_at={self.obtained_at}, "
            f"expires_at={self.expires_at})"
        )

    __str__ = __repr__


class TokenStore(ABC):
    """Holds at most one session token."""

    @abstractmethod
    async def load(self) -> Optional[SessionToken]:
        """Return the cached token, or None when there is none."""

    @abstractmethod
    async def save(self, token: SessionToken) -> None:
        """Replace any cached token with ``token``."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop the cached token."""


class MemoryTokenStore(TokenStore):
    """Process-local token cache."""

    def __init__(self, token: Optional[SessionToken] = None):
        self._token = token

    async def load(self) -> Optional[SessionToken]:
        return self._token

    async def save(self, token: SessionToken) -> None:
        self._token = token

    async def clear(self) -> None:
        self._token = None


class SQLiteTokenStore(TokenStore):
    """Token cache in the ``token`` table of the credentials database.

    A save is delete-all plus insert-one inside a single transaction.
    Concurrent refreshes from separate processes are last-writer-wins.
    """

    def __init__(self, database: Union[VaultDatabase, str, Path, None] = None):
        if not isinstance(database, VaultDatabase):
            database = VaultDatabase(database)
        self._db = database

    async def load(self) -> Optional[SessionToken]:
        async with self._db.transaction() as conn:
            async with conn.execute(_SELECT_TOKEN) as cursor:
                row = await cursor.fetchone()
        if row is None:
            return None
        return SessionToken(
            value=row["value"],
            obtained_at=row["obtained_at"],
            expires_at=row["expires_at"],
        )

    async def save(self, token: SessionToken) -> None:
        async with self._db.transaction() as conn:
            await conn.execute(_DELETE_TOKENS)
            await conn.execute(
                _INSERT_TOKEN,
                (token.value, token.obtained_at, token.expires_at),
            )
        logger.debug("Token cached, expires_at=%d", token.expires_at)

    async def clear(self) -> None:
        async with self._db.transaction() as conn:
            await conn.execute(_DELETE_TOKENS)
        logger.debug("Token cache cleared")
