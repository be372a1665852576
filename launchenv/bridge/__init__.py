"""Transport bridge between update jobs and the session bus."""

from launchenv.bridge.transport import (
    LocalTransport,
    PendingCall,
    SessionBusTransport,
    Transport,
    TransportError,
)

__all__ = [
    "LocalTransport",
    "PendingCall",
    "SessionBusTransport",
    "Transport",
    "TransportError",
]
