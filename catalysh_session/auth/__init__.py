"""Session tokens and authenticated request execution."""

from .token_store import (
    SessionToken,
    TokenStore,
    MemoryTokenStore,
    SQLiteTokenStore,
)
from .session_manager import SessionManager
from .executor import RequestExecutor

__all__ = [
    "SessionToken",
    "TokenStore",
    "MemoryTokenStore",
    "SQLiteTokenStore",
    "SessionManager",
    "RequestExecutor",
]
