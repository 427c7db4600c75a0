"""Auth event channel (publish/subscribe).

Hey future me - there is no global event bus. Producers (RefreshCoordinator,
AuthenticatedApiClient, AccountService) publish on the ONE bus instance the ServiceContainer
builds; UI-layer collaborators subscribe and e.g. show a "Reconnect Spotify" banner on AUTH_EXPIRED.

Delivery is synchronous and best effort: a listener that raises is logged and skipped, the other
listeners still run and the publisher never sees the error.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

logger = logging.getLogger(__name__)


class AuthEventType(str, Enum):
    """Credential state changes worth telling the UI about."""

    AUTH_EXPIRED = "auth_expired"
    AUTH_SUCCESS = "auth_success"
    SIGNED_OUT = "signed_out"


@dataclass(frozen=True)
class AuthEvent:
    """Payload delivered to subscribers."""

    type: AuthEventType
    reason: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


AuthEventListener = Callable[[AuthEvent], None]


class AuthEventBus:
    """Explicit observer channel for credential-state changes."""

    def __init__(self) -> None:
        self._listeners: list[AuthEventListener] = []

    def subscribe(self, listener: AuthEventListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: AuthEvent) -> None:
        """Deliver an event to every listener (snapshot of the list)."""
        suffix = f" ({event.reason})" if event.reason else ""
        logger.info("Auth event: %s%s", event.type.value, suffix)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(
                    "Auth event listener %r failed on %s: %s", listener, event.type.value, e
                )

    def emit(self, event_type: AuthEventType, reason: str | None = None) -> None:
        """Shortcut for publish(AuthEvent(event_type, reason))."""
        self.publish(AuthEvent(type=event_type, reason=reason))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
