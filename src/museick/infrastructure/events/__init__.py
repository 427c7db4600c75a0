"""Auth event channel."""

from museick.infrastructure.events.auth_events import (
    AuthEvent,
    AuthEventBus,
    AuthEventListener,
    AuthEventType,
)

__all__ = ["AuthEvent", "AuthEventBus", "AuthEventListener", "AuthEventType"]
