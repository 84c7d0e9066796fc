"""
HTTP helpers shared by the session manager and the request executor.

Every request carries an explicit total timeout. Connection failures and
timeouts surface as ``TransportError``; status handling is left to the
caller.
"""
import asyncio
import logging
from typing import Any, NamedTuple, Optional

import aiohttp
import orjson

from .conf import REQUEST_TIMEOUT
from .config import ClientConfig
from .exceptions import RequestFailed, TransportError

logger = logging.getLogger("catalysh.http")


class Reply(NamedTuple):
    """Fully read HTTP response."""

    status: int
    reason: Optional[str]
    body: bytes
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            RequestFailed: If the body is not valid JSON.
        """
        try:
            return orjson.loads(self.body)
        except orjson.JSONDecodeError as err:
            raise RequestFailed(
                self.status,
                self.reason,
                url=self.url,
                message=f"Malformed JSON in response from {self.url}",
            ) from err


def client_session(
    config: ClientConfig,
    timeout: float = REQUEST_TIMEOUT,
) -> aiohttp.ClientSession:
    """Create the aiohttp session used for every controller call.

    Must be called with a running event loop. TLS verification follows
    ``config.verify_tls``.
    """
    connector = aiohttp.TCPConnector(ssl=True if config.verify_tls else False)
    if not config.verify_tls:
        logger.debug("TLS certificate verification disabled for %s", config.endpoint_url)
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout),
        json_serialize=lambda obj: orjson.dumps(obj).decode("utf-8"),
    )


async def fetch(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    **kwargs: Any
) -> Reply:
    """Send one request and read the whole body.

    Raises:
        TransportError: On connection errors and timeouts.
    """
    try:
        async with session.request(method, url, **kwargs) as response:
            body = await response.read()
            return Reply(response.status, response.reason, body, url)
    except asyncio.TimeoutError as err:
        raise TransportError(
            f"Request to {url} timed out"
        ) from err
    except aiohttp.ClientError as err:
        raise TransportError(
            f"Request to {url} failed: {err}"
        ) from err
