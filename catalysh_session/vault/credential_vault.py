"""
CredentialVault — Machine-bound encrypted password storage.

Provides the public API of the credential vault:
- ``store(id, secret)`` — encrypt and upsert a password
- ``retrieve(id)`` — decrypt and return a password
- ``verify(id, candidate)`` — compare a candidate against the stored password
- ``delete(id)`` / ``clear()`` — drop stored credentials (credential reset)
- ``exists(id)`` / ``ids()`` / ``record(id)`` — inspect without decrypting

Every record has its own random salt and nonce. The key is re-derived from
the current machine identity on each operation and never cached; derivation
runs in a worker thread so the event loop is not blocked. A
vault file copied to another host fails authentication exactly like a
tampered one.

Security Note:
    Never log plaintext or ciphertext values. Only log credential ids and
    operations.
"""
import asyncio
import hmac
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from pydantic import BaseModel, ConfigDict

from .crypto import (
    SALT_SIZE,
    derive_key,
    encrypt_secret,
    decrypt_secret,
    new_nonce,
    new_salt,
)
from .identity import MachineIdentity, default_identity
from .storage import VaultDatabase
from ..exceptions import DecryptionFailed, NotFound

logger = logging.getLogger("catalysh.vault")

_MAX_ID_LENGTH = 255

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_UPSERT_CREDENTIAL = """
INSERT OR REPLACE INTO credentials (id, encrypted_data, nonce, salt)
VALUES (?, ?, ?, ?)
"""

_SELECT_CREDENTIAL = """
SELECT id, encrypted_data, nonce, salt, created_at
FROM credentials
WHERE id = ?
"""

_DELETE_CREDENTIAL = "DELETE FROM credentials WHERE id = ?"

_DELETE_ALL_CREDENTIALS = "DELETE FROM credentials"

_SELECT_IDS = "SELECT id FROM credentials ORDER BY id"


class CredentialRecord(BaseModel):
    """Stored row of the credentials table."""

    model_config = ConfigDict(frozen=True)

    id: str
    ciphertext: bytes
    nonce: bytes
    salt: bytes
    created_at: Optional[datetime] = None


class CredentialVault:
    """Encrypted password store bound to the machine that wrote it.

    Args:
        database: Backing database, or a path to the database file.
        identity: Machine identity strategy; defaults to the one for the
            running OS.
    """

    def __init__(
        self,
        database: Union[VaultDatabase, str, Path, None] = None,
        identity: Optional[MachineIdentity] = None,
    ):
        if not isinstance(database, VaultDatabase):
            database = VaultDatabase(database)
        self._db = database
        self._identity = identity or default_identity()

    @property
    def database(self) -> VaultDatabase:
        return self._db

    @property
    def identity(self) -> MachineIdentity:
        return self._identity

    # ------------------------------------------------------------------
    # Id validation
    # ------------------------------------------------------------------

    def _validate_id(self, cred_id: str) -> None:
        """Validate a credential id.

        Raises:
            ValueError: If id is not a string, is empty, or too long.
        """
        if not isinstance(cred_id, str) or not cred_id:
            raise ValueError("Credential id cannot be empty")
        if len(cred_id) > _MAX_ID_LENGTH:
            raise ValueError(
                f"Credential id cannot exceed {_MAX_ID_LENGTH} characters"
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def store(self, cred_id: str, secret: str) -> None:
        """Encrypt and persist a password, replacing any previous one.

        Args:
            cred_id: Credential id (the controller username).
            secret: Password to protect.

        Raises:
            ValueError: If the id is invalid.
            IdentityUnavailable, KeyDerivationFailed, VaultIO
        """
        self._validate_id(cred_id)
        salt = new_salt()
        nonce = new_nonce()
        key = await asyncio.to_thread(
            derive_key, self._identity.machine_key(), salt
        )
        ciphertext = encrypt_secret(key, nonce, secret.encode("utf-8"))

        async with self._db.transaction() as conn:
            await conn.execute(
                _UPSERT_CREDENTIAL, (cred_id, ciphertext, nonce, salt),
            )

        logger.info("Vault store: id=%s", cred_id)

    async def record(self, cred_id: str) -> CredentialRecord:
        """Return the raw stored record for an id.

        Raises:
            NotFound: If no record exists for the id.
        """
        self._validate_id(cred_id)
        async with self._db.transaction() as conn:
            async with conn.execute(_SELECT_CREDENTIAL, (cred_id,)) as cursor:
                row = await cursor.fetchone()
        if row is None:
            raise NotFound(cred_id)
        return CredentialRecord(
            id=row["id"],
            ciphertext=row["encrypted_data"],
            nonce=row["nonce"],
            salt=row["salt"],
            created_at=row["created_at"],
        )

    async def retrieve(self, cred_id: str) -> str:
        """Decrypt and return the stored password.

        Args:
            cred_id: Credential id.

        Returns:
            The plaintext password.

        Raises:
            NotFound: If no record exists for the id.
            DecryptionFailed: If the record does not authenticate under the
                current machine identity.
        """
        rec = await self.record(cred_id)
        if len(rec.salt) != SALT_SIZE:
            logger.error("Vault decrypt failed: id=%s (bad salt)", cred_id)
            raise DecryptionFailed(cred_id)
        key = await asyncio.to_thread(
            derive_key, self._identity.machine_key(), rec.salt
        )
        try:
            plaintext = decrypt_secret(key, rec.nonce, rec.ciphertext)
            secret = plaintext.decode("utf-8")
        except (InvalidTag, ValueError) as err:
            logger.error("Vault decrypt failed: id=%s", cred_id)
            raise DecryptionFailed(cred_id) from err
        logger.debug("Vault retrieve: id=%s", cred_id)
        return secret

    async def verify(self, cred_id: str, candidate: str) -> bool:
        """Check a candidate password against the stored one.

        The comparison is constant-time; only the boolean leaves the vault.
        """
        stored = await self.retrieve(cred_id)
        return hmac.compare_digest(
            stored.encode("utf-8"), candidate.encode("utf-8")
        )

    async def delete(self, cred_id: str) -> bool:
        """Remove the stored credential for an id.

        Returns:
            True if a record was deleted.
        """
        self._validate_id(cred_id)
        async with self._db.transaction() as conn:
            cursor = await conn.execute(_DELETE_CREDENTIAL, (cred_id,))
            deleted = cursor.rowcount > 0
        logger.info("Vault delete: id=%s deleted=%s", cred_id, deleted)
        return deleted

    async def clear(self) -> int:
        """Remove every stored credential.

        Returns:
            Number of records removed.
        """
        async with self._db.transaction() as conn:
            cursor = await conn.execute(_DELETE_ALL_CREDENTIALS)
            count = cursor.rowcount
        logger.info("Vault cleared: %d record(s)", count)
        return count

    async def exists(self, cred_id: str) -> bool:
        """Check whether a record exists, without decrypting it."""
        try:
            await self.record(cred_id)
        except NotFound:
            return False
        return True

    async def ids(self) -> list[str]:
        """List the stored credential ids."""
        async with self._db.transaction() as conn:
            async with conn.execute(_SELECT_IDS) as cursor:
                rows = await cursor.fetchall()
        return [row["id"] for row in rows]
