"""Catalysh Session.

Machine-bound credential vault and self-renewing session tokens for the
catalysh DNA Center client.
"""
from .version import __version__
from .config import ClientConfig, load_config, save_config
from .exceptions import (
    CatalyshError,
    IdentityUnavailable,
    KeyDerivationFailed,
    VaultIO,
    NotFound,
    DecryptionFailed,
    AuthenticationFailed,
    TransportError,
    RequestFailed,
)
from .vault import CredentialVault, StaticIdentity, default_identity
from .auth import (
    SessionToken,
    MemoryTokenStore,
    SQLiteTokenStore,
    SessionManager,
    RequestExecutor,
)
from .session import Session, setup_credentials, reset_credentials

__all__ = (
    "__version__",
    "ClientConfig",
    "load_config",
    "save_config",
    "CatalyshError",
    "IdentityUnavailable",
    "KeyDerivationFailed",
    "VaultIO",
    "NotFound",
    "DecryptionFailed",
    "AuthenticationFailed",
    "TransportError",
    "RequestFailed",
    "CredentialVault",
    "StaticIdentity",
    "default_identity",
    "SessionToken",
    "MemoryTokenStore",
    "SQLiteTokenStore",
    "SessionManager",
    "RequestExecutor",
    "Session",
    "setup_credentials",
    "reset_credentials",
)
