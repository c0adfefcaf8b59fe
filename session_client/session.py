"""
Session manager: hands out access tokens and coordinates refresh.

acquire_token() returns the stored access token while it is outside the proactive threshold
and refreshes otherwise. refresh() is single-flight: every caller that arrives while a
refresh is outstanding awaits the same result, so one expiry costs one network call.
A failed refresh clears the credential pair, publishes the session-expired signal once,
and raises SessionExpired to every waiter.
"""
import logging
from enum import Enum
from typing import Any

import httpx

from session_client import token_codec
from session_client.config import REFRESH_PATH, REFRESH_THRESHOLD_MINUTES
from session_client.credentials import CredentialStore
from session_client.errors import NotAuthenticated, SessionExpired
from session_client.events import SessionEvents
from session_client.singleflight import SingleFlight

logger = logging.getLogger(__name__)


class TokenState(str, Enum):
    MISSING = "missing"
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


class InvalidTokenResponse(Exception):
    """A token response (refresh, login, register) did not carry a usable credential pair."""


def parse_token_response(payload: Any) -> tuple[str, str, int | float]:
    """
    Extract (access_token, refresh_token, expires_in) from a token response.
    Accepts the bare form and the {"success": true, "data": {...}} envelope.
    """
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        if payload.get("success") is False:
            raise InvalidTokenResponse(payload.get("message") or "Token response reported failure")
        payload = payload["data"]
    if not isinstance(payload, dict):
        raise InvalidTokenResponse("Token response is not an object")
    access = payload.get("access_token")
    refresh = payload.get("refresh_token")
    expires_in = payload.get("expires_in")
    if not isinstance(access, str) or not access or not isinstance(refresh, str) or not refresh:
        raise InvalidTokenResponse("Token response missing access_token or refresh_token")
    if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
        raise InvalidTokenResponse("Token response missing numeric expires_in")
    return access, refresh, expires_in


class SessionManager:
    def __init__(
        self,
        store: CredentialStore,
        http: httpx.AsyncClient,
        events: SessionEvents,
        *,
        refresh_path: str = REFRESH_PATH,
        threshold_minutes: float = REFRESH_THRESHOLD_MINUTES,
    ):
        self.store = store
        self.events = events
        self._http = http
        self._refresh_path = refresh_path
        self._threshold_minutes = threshold_minutes
        self._refresh_flight: SingleFlight[str] = SingleFlight()

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_flight.in_flight

    def state(self) -> TokenState:
        if self.store.get_access() is None:
            return TokenState.MISSING
        if self.store.is_access_expired():
            return TokenState.EXPIRED
        if self.store.is_access_expiring_soon(self._threshold_minutes):
            return TokenState.EXPIRING_SOON
        return TokenState.VALID

    async def acquire_token(self) -> str:
        """Return a usable access token, refreshing first if it is expired or expiring soon."""
        access = self.store.get_access()
        if access is None:
            raise NotAuthenticated()
        if not self.store.is_access_expiring_soon(self._threshold_minutes):
            return access
        return await self.refresh()

    async def refresh(self) -> str:
        """Refresh the credential pair; concurrent callers share a single refresh call."""
        return await self._refresh_flight.do(self._perform_refresh)

    async def _perform_refresh(self) -> str:
        refresh_token = self.store.get_refresh()
        if refresh_token is None:
            raise self._expire("no refresh token stored")
        if self.store.is_refresh_expired():
            raise self._expire("refresh token expired")

        try:
            r = await self._http.post(self._refresh_path, json={"refresh_token": refresh_token})
            if not r.is_success:
                raise InvalidTokenResponse(f"refresh endpoint returned {r.status_code}")
            try:
                payload = r.json()
            except ValueError:
                raise InvalidTokenResponse("refresh response is not JSON")
            access, refresh, expires_in = parse_token_response(payload)
        except httpx.HTTPError as e:
            raise self._expire(f"transport error: {type(e).__name__}") from e
        except InvalidTokenResponse as e:
            raise self._expire(str(e)) from e

        self.store.set(access, refresh, expires_in)
        logger.info("Access token refreshed (expires_in=%ss)", expires_in)
        return access

    def _expire(self, reason: str) -> SessionExpired:
        logger.warning("Session expired: %s", reason)
        self.store.clear()
        self.events.publish()
        return SessionExpired(details={"reason": reason})

    def expire_session(self, reason: str) -> SessionExpired:
        """Terminate the session: clear credentials and broadcast. Returns the error to raise."""
        return self._expire(reason)

    def start_session(self, access_token: str, refresh_token: str, expires_in: int | float) -> None:
        """Store a freshly issued pair (login/register success)."""
        self.store.set(access_token, refresh_token, expires_in)
        user = token_codec.user_from_token(access_token)
        logger.info("Session started for subject=%s", user["id"] if user else "unknown")

    def end_session(self) -> None:
        """Logout: drop the credential pair. No session-expired broadcast."""
        self.store.clear()
        logger.info("Session ended")
