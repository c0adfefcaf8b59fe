"""
Advisory client-side token decoding. No signature verification: the server remains the
only authority on whether a token is genuine. Malformed input decodes to None and every
predicate fails closed (an undecodable token is treated as expired).
"""
import json
import logging
import math
import time
from dataclasses import dataclass

from jwt.utils import base64url_decode

logger = logging.getLogger(__name__)

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"


@dataclass(frozen=True)
class Claims:
    subject: str
    email: str
    role: str
    issued_at: float | None
    expires_at: float
    token_type: str


def _is_number(value) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, int) or (isinstance(value, float) and math.isfinite(value))


def decode(token: str | None) -> Claims | None:
    """Decode the payload segment into Claims; None for anything malformed."""
    if not isinstance(token, str):
        return None
    parts = token.split(".")
    if len(parts) != 3:
        return None
    try:
        payload = json.loads(base64url_decode(parts[1]))
    except (ValueError, TypeError, RecursionError) as e:
        logger.debug("Token payload could not be decoded: %s", e)
        return None
    if not isinstance(payload, dict) or not _is_number(payload.get("exp")):
        return None
    iat = payload.get("iat")
    return Claims(
        subject=str(payload.get("sub") or ""),
        email=str(payload.get("email") or ""),
        role=str(payload.get("role") or ""),
        issued_at=iat if _is_number(iat) else None,
        expires_at=payload["exp"],
        token_type=str(payload.get("type") or ""),
    )


def _now(now: float | None) -> float:
    return time.time() if now is None else now


def is_expired(token: str | None, now: float | None = None) -> bool:
    claims = decode(token)
    if claims is None:
        return True
    return claims.expires_at < _now(now)


def is_expiring_within(token: str | None, threshold_seconds: float, now: float | None = None) -> bool:
    """True if the token expires in less than threshold_seconds (or is undecodable)."""
    claims = decode(token)
    if claims is None:
        return True
    return claims.expires_at - _now(now) < threshold_seconds


def time_until_expiration(token: str | None, now: float | None = None) -> float:
    """Seconds until exp; 0 for expired or undecodable tokens."""
    claims = decode(token)
    if claims is None:
        return 0
    return max(0, claims.expires_at - _now(now))


def is_valid(token: str | None, now: float | None = None) -> bool:
    return decode(token) is not None and not is_expired(token, now)


def user_from_token(token: str | None) -> dict | None:
    claims = decode(token)
    if claims is None:
        return None
    return {"id": claims.subject, "email": claims.email, "role": claims.role}


def is_access_token(token: str | None) -> bool:
    claims = decode(token)
    return claims is not None and claims.token_type == TOKEN_TYPE_ACCESS


def is_refresh_token(token: str | None) -> bool:
    claims = decode(token)
    return claims is not None and claims.token_type == TOKEN_TYPE_REFRESH
