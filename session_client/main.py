"""
Session console: a small JSON API over the request gateway for local use.
GET /health, GET /session, POST /login, POST /logout, GET /call/{path}.
Session-expired broadcasts are counted so a front end can poll and force re-login.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from session_client import token_codec
from session_client.errors import ApiError, ErrorKind
from session_client.gateway import RequestGateway
from session_client.wiring import build_gateway

logger = logging.getLogger(__name__)

# HTTP status the console answers with for each error kind
KIND_STATUS = {
    ErrorKind.NOT_AUTHENTICATED: 401,
    ErrorKind.SESSION_EXPIRED: 401,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.SERVER_UNAVAILABLE: 503,
    ErrorKind.NETWORK_ERROR: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.MALFORMED_RESPONSE: 502,
    ErrorKind.UNKNOWN: 502,
}


class LoginBody(BaseModel):
    email: str
    password: str


def create_app(gateway: RequestGateway | None = None) -> FastAPI:
    """Build the console. Without a gateway, one is built from config at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        gw = gateway or build_gateway()
        app.state.gateway = gw
        app.state.session_expired_count = 0

        def on_session_expired() -> None:
            app.state.session_expired_count += 1
            logger.info("Session expired; re-authentication required")

        unsubscribe = gw.session.events.subscribe(on_session_expired)
        try:
            yield
        finally:
            unsubscribe()
            if gateway is None:
                await gw.aclose()

    app = FastAPI(title="Session Console", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=KIND_STATUS[exc.kind], content=exc.to_dict())

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "session_client"}

    @app.get("/session")
    def session_state(request: Request):
        """Current token state and the advisory identity decoded from the access token."""
        gw: RequestGateway = request.app.state.gateway
        access = gw.session.store.get_access()
        return {
            "state": gw.session.state().value,
            "user": token_codec.user_from_token(access),
            "access_expires_at": gw.session.store.get_expiry(),
            "session_expired_count": request.app.state.session_expired_count,
        }

    @app.post("/login")
    async def login(body: LoginBody, request: Request):
        gw: RequestGateway = request.app.state.gateway
        await gw.login(body.email, body.password)
        return {"status": "ok", "user": token_codec.user_from_token(gw.session.store.get_access())}

    @app.post("/logout")
    def logout(request: Request):
        request.app.state.gateway.logout()
        return {"status": "ok"}

    @app.get("/call/{path:path}")
    async def call(path: str, request: Request):
        """Proxy a GET to the backend through the gateway (token attach, refresh, retry)."""
        gw: RequestGateway = request.app.state.gateway
        return await gw.get("/" + path, params=dict(request.query_params) or None)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "session_client.main:app",
        host="127.0.0.1",
        port=8100,
        reload=True,
    )
