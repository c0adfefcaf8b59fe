"""
Session client configuration. Every value can be overridden from the environment.
No secrets in this file; credentials only ever live in the configured storage.
"""
import os

# Backend API base URL; all request paths are resolved against it
API_BASE_URL = os.environ.get("SESSION_API_BASE_URL", "http://127.0.0.1:8000").rstrip("/")

# Auth endpoints on the backend
REFRESH_PATH = os.environ.get("SESSION_REFRESH_PATH", "/auth/refresh")
LOGIN_PATH = os.environ.get("SESSION_LOGIN_PATH", "/auth/login")
REGISTER_PATH = os.environ.get("SESSION_REGISTER_PATH", "/register")

# Refresh proactively when the access token expires within this many minutes
REFRESH_THRESHOLD_MINUTES = int(os.environ.get("SESSION_REFRESH_THRESHOLD_MINUTES", "5"))

# Transport timeout (seconds). The client adds no timeout layer of its own.
HTTP_TIMEOUT_SECONDS = float(os.environ.get("SESSION_HTTP_TIMEOUT_SECONDS", "10.0"))

# Durable key-value storage for the credential pair. SQLite file survives restarts.
DATABASE_URL = os.environ.get("SESSION_DATABASE_URL", "sqlite:///./session_client.db")

# Fixed storage keys for the three credential fields
ACCESS_TOKEN_KEY = os.environ.get("SESSION_ACCESS_TOKEN_KEY", "session_client.access_token")
REFRESH_TOKEN_KEY = os.environ.get("SESSION_REFRESH_TOKEN_KEY", "session_client.refresh_token")
TOKEN_EXPIRY_KEY = os.environ.get("SESSION_TOKEN_EXPIRY_KEY", "session_client.token_expiry")

# Local abuse throttling per action class: (max attempts, window ms, block ms)
AUTH_RATE_LIMIT = (
    int(os.environ.get("SESSION_AUTH_MAX_ATTEMPTS", "5")),
    int(os.environ.get("SESSION_AUTH_WINDOW_MS", str(15 * 60 * 1000))),
    int(os.environ.get("SESSION_AUTH_BLOCK_MS", str(30 * 60 * 1000))),
)
SEARCH_RATE_LIMIT = (
    int(os.environ.get("SESSION_SEARCH_MAX_ATTEMPTS", "100")),
    int(os.environ.get("SESSION_SEARCH_WINDOW_MS", str(60 * 1000))),
    int(os.environ.get("SESSION_SEARCH_BLOCK_MS", str(5 * 60 * 1000))),
)
CONTACT_RATE_LIMIT = (
    int(os.environ.get("SESSION_CONTACT_MAX_ATTEMPTS", "3")),
    int(os.environ.get("SESSION_CONTACT_WINDOW_MS", str(60 * 60 * 1000))),
    int(os.environ.get("SESSION_CONTACT_BLOCK_MS", str(60 * 60 * 1000))),
)
