"""
Package-wide settings, read once from the environment.

    CATALYSH_CONFIG_DIR       directory holding config.json and credentials.db
    CATALYSH_TOKEN_TTL        bearer token lifetime in seconds
    CATALYSH_REQUEST_TIMEOUT  total timeout for a single HTTP request
    CATALYSH_PAGE_SIZE        page size used for list endpoints
"""
import os
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return int(raw)


CONFIG_DIR = Path(
    os.environ.get("CATALYSH_CONFIG_DIR", Path.home() / ".config" / "catalysh")
).expanduser()
CONFIG_FILE = CONFIG_DIR / "config.json"
CREDENTIALS_DB = CONFIG_DIR / "credentials.db"

TOKEN_TTL = _env_int("CATALYSH_TOKEN_TTL", 3600)
REQUEST_TIMEOUT = _env_int("CATALYSH_REQUEST_TIMEOUT", 30)

# the list endpoints of the controller count offsets from 1
PAGE_SIZE = _env_int("CATALYSH_PAGE_SIZE", 500)
PAGE_START_OFFSET = 1

TOKEN_PATH = "/dna/system/api/v1/auth/token"
AUTH_HEADER = "X-Auth-Token"
