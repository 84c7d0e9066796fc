"""
Shared fixtures: a fake DNA Center controller served by aiohttp, a vault
bound to a fixed machine identity, and client plumbing pointed at both.
"""
import asyncio

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from catalysh_session.auth import MemoryTokenStore, SessionManager, RequestExecutor
from catalysh_session.config import ClientConfig
from catalysh_session.vault import CredentialVault, StaticIdentity, VaultDatabase

USERNAME = "alice"
PASSWORD = "Sup3r$ecret"


class FakeController:
    """Minimal controller: token endpoint plus a few resource endpoints.

    Resource endpoints accept only tokens listed in ``valid_tokens``;
    anything else gets a 401.
    """

    def __init__(self, username: str = USERNAME, password: str = PASSWORD):
        self.username = username
        self.password = password
        self.auth_calls = 0
        self.token_statuses: list[int] = []
        self.token_body = None
        self.valid_tokens: set[str] = set()
        self.presented: list[str] = []
        self.page_requests: list[tuple[int, int]] = []
        self.devices: list[dict] = []
        self.last_headers = None
        self.revoke_after_first_page = False
        self.token_delay = 0.0
        self.last_authorization = None

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/dna/system/api/v1/auth/token", self.token)
        app.router.add_get("/dna/intent/api/v1/network-device", self.network_devices)
        app.router.add_get("/dna/intent/api/v1/device-enrichment-details", self.enrichment)
        app.router.add_get("/dna/intent/api/v1/always-401", self.always_unauthorized)
        app.router.add_get("/dna/intent/api/v1/missing", self.missing)
        app.router.add_get("/dna/intent/api/v1/broken", self.broken)
        app.router.add_get("/dna/intent/api/v1/not-a-list", self.not_a_list)
        return app

    def _authorized(self, request: web.Request) -> bool:
        token = request.headers.get("X-Auth-Token")
        self.presented.append(token)
        return token in self.valid_tokens

    async def token(self, request: web.Request) -> web.Response:
        self.auth_calls += 1
        if self.token_delay:
            await asyncio.sleep(self.token_delay)
        if self.token_statuses:
            status = self.token_statuses.pop(0)
            if status != 200:
                return web.Response(status=status)
        header = request.headers.get("Authorization", "")
        self.last_authorization = header
        try:
            creds = aiohttp.BasicAuth.decode(header, encoding="utf-8")
        except ValueError:
            return web.Response(status=401)
        if creds.login != self.username or creds.password != self.password:
            return web.Response(status=401)
        if self.token_body is not None:
            return web.json_response(self.token_body)
        value = f"token-{self.auth_calls}"
        self.valid_tokens.add(value)
        return web.json_response({"Token": value})

    async def network_devices(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401)
        offset = int(request.query["offset"])
        limit = int(request.query["limit"])
        self.page_requests.append((offset, limit))
        start = offset - 1
        page = self.devices[start:start + limit]
        if self.revoke_after_first_page and len(self.page_requests) == 1:
            self.valid_tokens.clear()
        return web.json_response({"response": page})

    async def enrichment(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401)
        self.last_headers = dict(request.headers)
        return web.json_response(
            [{"deviceDetails": {"hostname": "edge-01"}}]
        )

    async def always_unauthorized(self, request: web.Request) -> web.Response:
        self._authorized(request)
        return web.Response(status=401)

    async def missing(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401)
        return web.Response(status=404)

    async def broken(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401)
        return web.Response(status=200, body=b"<html>not json</html>")

    async def not_a_list(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401)
        return web.json_response({"response": {"id": "x"}})


@pytest.fixture
def identity():
    return StaticIdentity(b"4c4c4544-0042-3510-8051-b7c04f4b4d32")


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "catalysh" / "credentials.db"


@pytest.fixture
def database(db_path):
    return VaultDatabase(db_path)


@pytest.fixture
def vault(database, identity):
    return CredentialVault(database, identity=identity)


@pytest_asyncio.fixture
async def controller():
    fake = FakeController()
    server = TestServer(fake.app())
    await server.start_server()
    fake.url = f"http://{server.host}:{server.port}"
    yield fake
    await server.close()


@pytest.fixture
def config(controller):
    return ClientConfig(
        endpoint_url=controller.url, username=USERNAME, verify_tls=False
    )


@pytest_asyncio.fixture
async def http():
    session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=5))
    yield session
    await session.close()


@pytest_asyncio.fixture
async def stored_vault(vault):
    await vault.store(USERNAME, PASSWORD)
    return vault


class Clock:
    """Settable epoch clock."""

    def __init__(self, now: float = 2000):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def token_store():
    return MemoryTokenStore()


@pytest.fixture
def sessions(config, stored_vault, token_store, http, clock):
    return SessionManager(
        config, stored_vault, token_store, http, ttl=3600, clock=clock
    )


@pytest.fixture
def executor(sessions, http):
    return RequestExecutor(sessions, http)
