"""
Client Configuration — Controller endpoint, username and TLS settings.

The configuration is produced by the interactive setup flow of the command
line tool and is read-only to the credential and session layer. It can be
loaded from a JSON file or from environment variables:
    CATALYSH_ENDPOINT_URL = https://dnac.example.com
    CATALYSH_USERNAME     = <controller user>
    CATALYSH_VERIFY_TLS   = true | false

Security Note:
    The password is never part of the configuration; it lives in the
    credential vault.
"""
import os
import logging
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

import orjson
from pydantic import BaseModel, Field, field_validator

from .conf import CONFIG_FILE

logger = logging.getLogger("catalysh.config")

_TRUE_VALUES = frozenset({"1", "true", "yes", "y", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "n", "off"})


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


class ClientConfig(BaseModel):
    """Validated client configuration."""

    endpoint_url: str
    username: str = Field(min_length=1)
    verify_tls: bool = Field(default=True)

    model_config = {"frozen": True}

    @field_validator("endpoint_url")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Require an http(s) URL and strip any trailing slash."""
        v = v.strip().rstrip("/")
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"endpoint_url must be an http(s) URL, got {v!r}")
        return v

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Usernames are stored trimmed, as typed at the setup prompt."""
        v = v.strip()
        if not v:
            raise ValueError("username cannot be empty")
        return v

    def url(self, path: str) -> str:
        """Join a resource path onto the endpoint; absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.endpoint_url}{path}"

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Create ClientConfig by loading values from environment.

        Returns:
            Populated ClientConfig instance.

        Raises:
            RuntimeError: If the endpoint or the username is not set.
        """
        endpoint = os.environ.get("CATALYSH_ENDPOINT_URL")
        username = os.environ.get("CATALYSH_USERNAME")
        if not endpoint or not username:
            raise RuntimeError(
                "CATALYSH_ENDPOINT_URL and CATALYSH_USERNAME must be set"
            )
        verify = _parse_bool(
            "CATALYSH_VERIFY_TLS", os.environ.get("CATALYSH_VERIFY_TLS", "true")
        )
        return cls(endpoint_url=endpoint, username=username, verify_tls=verify)


def load_config(path: Union[str, Path, None] = None) -> ClientConfig:
    """Load the client configuration from its JSON file.

    Args:
        path: Config file; defaults to ``CONFIG_FILE``.

    Returns:
        Validated ClientConfig.

    Raises:
        FileNotFoundError: If the file does not exist and setup must run.
    """
    path = Path(path or CONFIG_FILE)
    data = orjson.loads(path.read_bytes())
    config = ClientConfig.model_validate(data)
    logger.debug("Loaded configuration from %s (user=%s)", path, config.username)
    return config


def save_config(config: ClientConfig, path: Union[str, Path, None] = None) -> Path:
    """Write the client configuration as JSON, readable by the owner only.

    Args:
        config: Configuration to persist.
        path: Destination; defaults to ``CONFIG_FILE``.

    Returns:
        The path written.
    """
    path = Path(path or CONFIG_FILE)
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    path.write_bytes(
        orjson.dumps(config.model_dump(), option=orjson.OPT_INDENT_2)
    )
    os.chmod(path, 0o600)
    logger.debug("Saved configuration to %s", path)
    return path
