"""
Builds the object graph for one process: storage, credential store, session manager,
rate limiters and gateway. Nothing here is module-global; callers own what they build.
"""
import time
from collections.abc import Callable

import httpx

from session_client.config import API_BASE_URL, DATABASE_URL, HTTP_TIMEOUT_SECONDS
from session_client.credentials import CredentialStore
from session_client.events import SessionEvents
from session_client.gateway import RequestGateway
from session_client.rate_limit import RateLimiters
from session_client.session import SessionManager
from session_client.storage import KeyValueStorage, SqlStorage


def build_gateway(
    *,
    storage: KeyValueStorage | None = None,
    http: httpx.AsyncClient | None = None,
    events: SessionEvents | None = None,
    clock: Callable[[], float] = time.time,
) -> RequestGateway:
    """Defaults: SQLite storage at DATABASE_URL and an AsyncClient on API_BASE_URL."""
    if storage is None:
        storage = SqlStorage(DATABASE_URL)
    if http is None:
        http = httpx.AsyncClient(base_url=API_BASE_URL, timeout=HTTP_TIMEOUT_SECONDS)
    session = SessionManager(CredentialStore(storage, clock), http, events or SessionEvents())
    return RequestGateway(http, session, limiters=RateLimiters.from_config(clock))
