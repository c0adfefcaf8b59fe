"""
Payload-free session-expired broadcast. The presentation layer subscribes to force
re-authentication; SessionManager publishes once per failed refresh cycle.
"""
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class SessionEvents:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self) -> None:
        # A failing listener must not stop the others or the caller that expired the session
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.warning("Session-expired listener %r failed: %s", listener, e)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
