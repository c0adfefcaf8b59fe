"""
Shared fixtures: a controllable clock, a token factory, and a scripted backend that
plugs into httpx.MockTransport so no test touches the network.
"""
import asyncio

import httpx
import jwt
import pytest

from session_client.credentials import CredentialStore
from session_client.events import SessionEvents
from session_client.gateway import RequestGateway
from session_client.rate_limit import RateLimiters
from session_client.session import SessionManager
from session_client.storage import MemoryStorage

START = 1_700_000_000.0
# Tokens are only decoded client-side, never verified; any key works
SIGNING_KEY = "session-client-test-signing-key-0123456789"
BASE_URL = "http://api.test"


class FakeClock:
    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """
    Scripted responses per (method, path). Each queued item is used once, except the
    last one which repeats. Items are httpx.Response objects or exceptions to raise.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list] = {}
        self.requests: list[httpx.Request] = []
        self.delay = 0.0

    def add(self, method: str, path: str, *items) -> None:
        self.routes.setdefault((method, path), []).extend(items)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "No such route"})
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_token(clock):
    def _make(expires_in: float = 3600, token_type: str = "access", **claims) -> str:
        payload = {
            "sub": "42",
            "email": "user@example.com",
            "role": "customer",
            "iat": int(clock.now),
            "exp": int(clock.now + expires_in),
            "type": token_type,
        }
        payload.update(claims)
        return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")

    return _make


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def events():
    return SessionEvents()


@pytest.fixture
def http(backend):
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(backend.handler))


@pytest.fixture
def store(storage, clock):
    return CredentialStore(storage, clock)


@pytest.fixture
def session(store, http, events):
    return SessionManager(store, http, events, threshold_minutes=5)


@pytest.fixture
def gateway(http, session, clock):
    return RequestGateway(http, session, limiters=RateLimiters.from_config(clock))


@pytest.fixture
def expired_events(events):
    """List that grows by one entry per session-expired broadcast."""
    seen = []
    events.subscribe(lambda: seen.append("expired"))
    return seen
