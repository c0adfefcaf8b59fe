"""
Local abuse throttling. Fixed window per identifier (e.g. an email) with an escalating block:
once attempts in the window exceed max_attempts, the identifier is blocked for block_ms.
Advisory only: state is process-local and must be backed by server-side enforcement.
"""
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from session_client.config import AUTH_RATE_LIMIT, CONTACT_RATE_LIMIT, SEARCH_RATE_LIMIT

_MINUTE_MS = 60 * 1000


@dataclass
class RateLimitEntry:
    identifier: str
    attempt_count: int
    window_started_at: int
    last_attempt_at: int
    blocked: bool = False


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_minutes: int = 0


class RateLimiter:
    def __init__(
        self,
        max_attempts: int = 5,
        window_ms: int = 15 * _MINUTE_MS,
        block_ms: int = 30 * _MINUTE_MS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_attempts = max_attempts
        self.window_ms = window_ms
        self.block_ms = block_ms
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def is_allowed(self, identifier: str) -> bool:
        """Record an attempt for identifier and return whether it may proceed."""
        now = self._now_ms()
        with self._lock:
            entry = self._entries.get(identifier)
            if entry is None:
                self._entries[identifier] = RateLimitEntry(identifier, 1, now, now)
                return True

            if entry.blocked and (now - entry.last_attempt_at) < self.block_ms:
                return False

            if entry.blocked or (now - entry.window_started_at) > self.window_ms:
                entry.attempt_count = 1
                entry.window_started_at = now
                entry.last_attempt_at = now
                entry.blocked = False
                return True

            entry.attempt_count += 1
            entry.last_attempt_at = now
            if entry.attempt_count > self.max_attempts:
                entry.blocked = True
                return False
            return True

    def get_blocked_time_remaining(self, identifier: str) -> int:
        """Whole minutes (rounded up) until identifier is unblocked; 0 if not blocked."""
        entry = self._entries.get(identifier)
        if entry is None or not entry.blocked:
            return 0
        remaining_ms = self.block_ms - (self._now_ms() - entry.last_attempt_at)
        if remaining_ms <= 0:
            return 0
        return math.ceil(remaining_ms / _MINUTE_MS)

    def check(self, identifier: str) -> RateLimitDecision:
        if self.is_allowed(identifier):
            return RateLimitDecision(allowed=True)
        return RateLimitDecision(allowed=False, retry_after_minutes=self.get_blocked_time_remaining(identifier))

    def get_entry(self, identifier: str) -> RateLimitEntry | None:
        return self._entries.get(identifier)


@dataclass
class RateLimiters:
    """One independently configured limiter per action class."""

    auth: RateLimiter
    search: RateLimiter
    contact: RateLimiter

    ACTIONS = ("auth", "search", "contact")

    def for_action(self, action: str) -> RateLimiter:
        if action not in self.ACTIONS:
            raise ValueError(f"Unknown rate-limit action {action!r}; expected one of {', '.join(self.ACTIONS)}")
        return getattr(self, action)

    @classmethod
    def from_config(cls, clock: Callable[[], float] = time.time) -> "RateLimiters":
        return cls(
            auth=RateLimiter(*AUTH_RATE_LIMIT, clock=clock),
            search=RateLimiter(*SEARCH_RATE_LIMIT, clock=clock),
            contact=RateLimiter(*CONTACT_RATE_LIMIT, clock=clock),
        )
