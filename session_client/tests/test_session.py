"""Tests for SessionManager: token hand-out, single-flight refresh, failure handling."""
import asyncio
import json

import httpx
import pytest

from session_client.errors import NotAuthenticated, SessionExpired
from session_client.session import InvalidTokenResponse, TokenState, parse_token_response

REFRESH = "/auth/refresh"


def _refresh_ok(access: str, refresh: str, expires_in: int = 3600) -> httpx.Response:
    return httpx.Response(200, json={"access_token": access, "refresh_token": refresh, "expires_in": expires_in})


@pytest.mark.asyncio
async def test_missing_token_raises_not_authenticated(session, backend):
    assert session.state() is TokenState.MISSING
    with pytest.raises(NotAuthenticated):
        await session.acquire_token()
    assert backend.requests == []


@pytest.mark.asyncio
async def test_valid_token_returned_without_network(session, store, backend, make_token):
    access = make_token(expires_in=3600)
    store.set(access, make_token(expires_in=86400, token_type="refresh"), 3600)
    assert session.state() is TokenState.VALID
    assert await session.acquire_token() == access
    assert backend.requests == []


@pytest.mark.asyncio
async def test_expiring_token_is_refreshed_proactively(session, store, backend, make_token):
    old_refresh = make_token(expires_in=86400, token_type="refresh")
    store.set(make_token(expires_in=120), old_refresh, 120)
    assert session.state() is TokenState.EXPIRING_SOON
    new_access = make_token(expires_in=3600, sub="new")
    new_refresh = make_token(expires_in=86400, token_type="refresh", sub="new")
    backend.add("POST", REFRESH, _refresh_ok(new_access, new_refresh))

    assert await session.acquire_token() == new_access
    calls = backend.calls("POST", REFRESH)
    assert len(calls) == 1
    assert json.loads(calls[0].content) == {"refresh_token": old_refresh}


@pytest.mark.asyncio
async def test_concurrent_acquire_triggers_one_refresh(session, store, backend, clock, make_token):
    store.set(make_token(expires_in=-10), make_token(expires_in=86400, token_type="refresh"), 0)
    assert session.state() is TokenState.EXPIRED
    new_access = make_token(expires_in=3600, sub="fresh")
    backend.add("POST", REFRESH, _refresh_ok(new_access, make_token(expires_in=86400, token_type="refresh")))
    backend.delay = 0.01

    results = await asyncio.gather(*(session.acquire_token() for _ in range(10)))

    assert results == [new_access] * 10
    assert len(backend.calls("POST", REFRESH)) == 1
    assert session.refresh_in_flight is False


@pytest.mark.asyncio
async def test_successful_refresh_replaces_whole_pair(session, store, clock, backend, make_token):
    store.set("stale-access", make_token(expires_in=86400, token_type="refresh"), 0)
    new_access = make_token(expires_in=1800, sub="n")
    new_refresh = make_token(expires_in=86400, token_type="refresh", sub="n")
    backend.add(
        "POST",
        REFRESH,
        httpx.Response(200, json={"success": True, "data": {"access_token": new_access, "refresh_token": new_refresh, "expires_in": 1800}}),
    )

    assert await session.refresh() == new_access
    pair = store.get_pair()
    assert pair.access_token == new_access
    assert pair.refresh_token == new_refresh
    assert pair.access_expires_at == int(clock.now * 1000) + 1_800_000


@pytest.mark.asyncio
async def test_expired_refresh_token_fails_without_network(session, store, backend, expired_events, make_token):
    store.set(make_token(expires_in=-10), make_token(expires_in=-5, token_type="refresh"), 0)
    with pytest.raises(SessionExpired):
        await session.acquire_token()
    assert backend.requests == []
    assert store.get_pair() is None
    assert expired_events == ["expired"]


@pytest.mark.parametrize(
    "failure",
    [
        httpx.Response(401, json={"message": "refresh token revoked"}),
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"access_token": "only-access"}),
        httpx.Response(200, json={"success": False, "data": {}, "message": "nope"}),
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
    ],
)
@pytest.mark.asyncio
async def test_refresh_failure_clears_credentials_and_broadcasts_once(
    session, store, backend, expired_events, make_token, failure
):
    store.set(make_token(expires_in=-10), make_token(expires_in=86400, token_type="refresh"), 0)
    backend.add("POST", REFRESH, failure)
    backend.delay = 0.01

    results = await asyncio.gather(*(session.acquire_token() for _ in range(5)), return_exceptions=True)

    assert all(isinstance(r, SessionExpired) for r in results)
    assert len(backend.calls("POST", REFRESH)) == 1
    assert store.get_pair() is None
    assert expired_events == ["expired"]
    assert session.refresh_in_flight is False


@pytest.mark.asyncio
async def test_next_expiry_triggers_fresh_refresh_attempt(session, store, backend, make_token):
    """After a failed cycle the marker is cleared, so a new login + expiry refreshes again."""
    store.set(make_token(expires_in=-10), make_token(expires_in=86400, token_type="refresh"), 0)
    new_access = make_token(expires_in=3600)
    backend.add(
        "POST",
        REFRESH,
        httpx.Response(503, json={}),
        _refresh_ok(new_access, make_token(expires_in=86400, token_type="refresh")),
    )
    with pytest.raises(SessionExpired):
        await session.acquire_token()

    session.start_session(make_token(expires_in=-10), make_token(expires_in=86400, token_type="refresh"), 0)
    assert await session.acquire_token() == new_access
    assert len(backend.calls("POST", REFRESH)) == 2


def test_end_session_clears_without_broadcast(session, store, expired_events, make_token):
    session.start_session(make_token(), make_token(token_type="refresh"), 3600)
    session.end_session()
    assert store.get_pair() is None
    assert expired_events == []


def test_parse_token_response_accepts_bare_and_enveloped():
    bare = {"access_token": "a", "refresh_token": "r", "expires_in": 60}
    assert parse_token_response(bare) == ("a", "r", 60)
    assert parse_token_response({"success": True, "data": bare, "message": None}) == ("a", "r", 60)
    with pytest.raises(InvalidTokenResponse):
        parse_token_response({"access_token": "a", "refresh_token": "r", "expires_in": "60"})
    with pytest.raises(InvalidTokenResponse):
        parse_token_response(["a", "r", 60])
