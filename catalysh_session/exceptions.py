"""
Exception hierarchy for the credential vault and session layer.

Every error raised by this package derives from ``CatalyshError`` so the
command layer can report it and abort with a single ``except`` clause.
Vault, key-derivation and authentication errors are never retried here.
"""
from typing import Optional


_RESET_HINT = "Run 'app config reset-credentials' and reconfigure."


class CatalyshError(Exception):
    """Base class for credential and session errors."""

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)


class IdentityUnavailable(CatalyshError):
    """No machine identity source is reachable on this host."""


class KeyDerivationFailed(CatalyshError):
    """Argon2id key derivation failed."""


class VaultIO(CatalyshError):
    """Credential database could not be read or written."""


class NotFound(CatalyshError):
    """No stored credential exists for the requested id."""

    def __init__(self, cred_id: str):
        self.cred_id = cred_id
        super().__init__(
            f"No stored credentials for '{cred_id}'. {_RESET_HINT}"
        )


class DecryptionFailed(CatalyshError):
    """Stored credential failed authentication.

    Raised alike for tampered records, corrupted records and records
    written on another machine.
    """

    def __init__(self, cred_id: str):
        self.cred_id = cred_id
        super().__init__(
            f"Could not decrypt stored credentials for '{cred_id}'. "
            f"{_RESET_HINT}"
        )


class AuthenticationFailed(CatalyshError):
    """Remote service rejected the configured credentials."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or f"Authentication failed: invalid credentials. {_RESET_HINT}"
        )


class TransportError(CatalyshError):
    """Network failure, timeout or server-side error; safe to retry."""


class RequestFailed(CatalyshError):
    """Remote call returned an unexpected non-success status."""

    def __init__(
        self,
        status: int,
        reason: Optional[str] = None,
        url: Optional[str] = None,
        message: Optional[str] = None
    ):
        self.status = status
        self.reason = reason or "Unknown error"
        self.url = url
        if message is None:
            message = f"Request failed with status: {status} - {self.reason}"
            if url:
                message = f"{message} ({url})"
        super().__init__(message)
