"""
Request gateway: the single entry point collaborators use to call the backend.

Per call: merge headers, acquire a token (public calls proceed without one), dispatch,
parse, and classify. A 401 triggers exactly one refresh-and-retry; whatever the retry
returns is final. Transport failures and timeouts are reported separately from HTTP errors.
"""
import logging
from typing import Any

import httpx

from session_client.config import LOGIN_PATH, REGISTER_PATH
from session_client.errors import (
    MalformedResponse,
    NetworkError,
    NotAuthenticated,
    RateLimitedError,
    RequestTimeout,
    error_for_status,
)
from session_client.rate_limit import RateLimiters
from session_client.session import InvalidTokenResponse, SessionManager, parse_token_response

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}

_MESSAGE_FIELDS = ("message", "error_description", "error")


def _server_message(payload: Any) -> str | None:
    """First non-empty human-readable message in an error body, if the server sent one."""
    if not isinstance(payload, dict):
        return None
    detail = payload.get("detail")
    if isinstance(detail, str) and detail:
        return detail
    sources = [detail, payload] if isinstance(detail, dict) else [payload]
    for source in sources:
        for field in _MESSAGE_FIELDS:
            value = source.get(field)
            if isinstance(value, str) and value:
                return value
    return None


class RequestGateway:
    def __init__(
        self,
        http: httpx.AsyncClient,
        session: SessionManager,
        *,
        limiters: RateLimiters | None = None,
        default_headers: dict[str, str] | None = None,
        login_path: str = LOGIN_PATH,
        register_path: str = REGISTER_PATH,
    ):
        self.session = session
        self.limiters = limiters
        self._http = http
        self._default_headers = dict(DEFAULT_HEADERS if default_headers is None else default_headers)
        self._login_path = login_path
        self._register_path = register_path

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict | None = None,
        headers: dict[str, str] | None = None,
        authenticate: bool = True,
    ) -> Any:
        """
        Send a request and return the parsed JSON payload.
        authenticate=False skips token handling entirely (login/register); a 401 is then
        reported as NotAuthenticated instead of triggering a refresh.
        """
        merged = {**self._default_headers, **(headers or {})}

        token = None
        if authenticate:
            try:
                token = await self.session.acquire_token()
            except NotAuthenticated:
                logger.debug("No stored session; sending %s %s without bearer", method, path)

        r = await self._dispatch(method, path, merged, token, json=json, params=params)

        if r.status_code == 401 and authenticate:
            logger.info("%s %s returned 401; refreshing and retrying once", method, path)
            token = await self.session.refresh()
            r = await self._dispatch(method, path, merged, token, json=json, params=params)
            if r.status_code == 401:
                raise self.session.expire_session("request rejected after refresh")

        return self._handle_response(r, authenticate=authenticate)

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def _dispatch(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        token: str | None,
        *,
        json: Any = None,
        params: dict | None = None,
    ) -> httpx.Response:
        if token:
            headers = {**headers, "Authorization": f"Bearer {token}"}
        try:
            return await self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out: %s", method, path, type(e).__name__)
            raise RequestTimeout(details={"method": method, "path": path}) from e
        except httpx.RequestError as e:
            logger.warning("%s %s failed at transport level: %s", method, path, e)
            raise NetworkError(details={"method": method, "path": path}) from e

    def _handle_response(self, r: httpx.Response, *, authenticate: bool) -> Any:
        parsed = True
        if not r.content:
            payload = None
        else:
            try:
                payload = r.json()
            except ValueError:
                parsed = False
                payload = {
                    "success": False,
                    "data": None,
                    "message": None,
                    "error": f"HTTP {r.status_code}: {r.reason_phrase}",
                }

        if r.is_success:
            if not parsed:
                raise MalformedResponse(status_code=r.status_code, details=payload)
            return payload

        message = _server_message(payload) if parsed else None
        details = payload if isinstance(payload, dict) else {"body": payload}
        if r.status_code == 401 and not authenticate:
            raise NotAuthenticated(message, status_code=401, details=details)
        error = error_for_status(r.status_code, message, details)
        logger.info("%s %s failed: %s (%s)", r.request.method, r.request.url.path, error.kind.value, r.status_code)
        raise error

    def check_rate_limit(self, action: str, identifier: str) -> None:
        """Consult the limiter for an action class ("auth", "search", "contact")."""
        if self.limiters is None:
            return
        limiter = self.limiters.for_action(action)
        decision = limiter.check(identifier)
        if not decision.allowed:
            minutes = decision.retry_after_minutes
            logger.warning("Rate limit exceeded for %s action", action)
            raise RateLimitedError(
                f"Too many attempts. Please try again in {minutes} minutes.",
                details={"action": action, "retry_after_minutes": minutes},
            )

    async def login(self, email: str, password: str) -> Any:
        """Exchange credentials for a token pair and start a session."""
        self.check_rate_limit("auth", email)
        payload = await self.request(
            "POST", self._login_path, json={"email": email, "password": password}, authenticate=False
        )
        self._start_session_from(payload)
        return payload

    async def register(self, **user_data: Any) -> Any:
        """Create an account; the response carries a token pair like login."""
        self.check_rate_limit("auth", str(user_data.get("email", "")))
        payload = await self.request("POST", self._register_path, json=user_data, authenticate=False)
        self._start_session_from(payload)
        return payload

    def logout(self) -> None:
        self.session.end_session()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _start_session_from(self, payload: Any) -> None:
        try:
            access, refresh, expires_in = parse_token_response(payload)
        except InvalidTokenResponse as e:
            raise MalformedResponse(str(e)) from e
        self.session.start_session(access, refresh, expires_in)
