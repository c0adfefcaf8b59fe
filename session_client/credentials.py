"""
Durable holder of the credential pair: access token, refresh token, absolute access expiry (ms).
The three fields are written and removed together; a partially present pair is treated as
corrupt and cleared on read.
"""
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from session_client import token_codec
from session_client.config import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, TOKEN_EXPIRY_KEY
from session_client.storage import KeyValueStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialPair:
    access_token: str
    refresh_token: str
    access_expires_at: int  # epoch ms


class CredentialStore:
    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Callable[[], float] = time.time,
        *,
        access_key: str = ACCESS_TOKEN_KEY,
        refresh_key: str = REFRESH_TOKEN_KEY,
        expiry_key: str = TOKEN_EXPIRY_KEY,
    ):
        self._storage = storage
        self._clock = clock
        self._keys = (access_key, refresh_key, expiry_key)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def set(self, access_token: str, refresh_token: str, expires_in: int | float) -> CredentialPair:
        """Replace the whole pair. expires_in is seconds from now."""
        expires_at = self._now_ms() + int(expires_in * 1000)
        access_key, refresh_key, expiry_key = self._keys
        self._storage.set_many(
            {
                access_key: access_token,
                refresh_key: refresh_token,
                expiry_key: str(expires_at),
            }
        )
        return CredentialPair(access_token, refresh_token, expires_at)

    def get_access(self) -> str | None:
        pair = self.get_pair()
        return pair.access_token if pair else None

    def get_refresh(self) -> str | None:
        pair = self.get_pair()
        return pair.refresh_token if pair else None

    def get_expiry(self) -> int | None:
        pair = self.get_pair()
        return pair.access_expires_at if pair else None

    def get_pair(self) -> CredentialPair | None:
        access_key, refresh_key, expiry_key = self._keys
        access = self._storage.get(access_key)
        refresh = self._storage.get(refresh_key)
        expiry = self._storage.get(expiry_key)
        if access is None and refresh is None and expiry is None:
            return None
        try:
            expires_at = int(expiry) if expiry is not None else None
        except ValueError:
            expires_at = None
        if not access or not refresh or expires_at is None:
            logger.warning("Stored credentials are incomplete or corrupt; clearing")
            self.clear()
            return None
        return CredentialPair(access, refresh, expires_at)

    def clear(self) -> None:
        self._storage.remove_many(self._keys)

    def is_access_expired(self) -> bool:
        pair = self.get_pair()
        if pair is None:
            return True
        if pair.access_expires_at < self._now_ms():
            return True
        return token_codec.is_expired(pair.access_token, now=self._clock())

    def is_access_expiring_soon(self, minutes: float = 5) -> bool:
        """True when the access token is missing, expired, or expires within `minutes`."""
        pair = self.get_pair()
        if pair is None:
            return True
        threshold_ms = minutes * 60 * 1000
        if pair.access_expires_at - self._now_ms() < threshold_ms:
            return True
        return token_codec.is_expiring_within(pair.access_token, minutes * 60, now=self._clock())

    def is_refresh_expired(self) -> bool:
        refresh = self.get_refresh()
        if refresh is None:
            return True
        return token_codec.is_expired(refresh, now=self._clock())
