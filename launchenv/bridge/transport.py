"""Transport bridge — submits outgoing requests and hands back pending calls.

Bridge boundary
---------------
Update jobs depend only on the :class:`Transport` protocol: ``submit``
takes an :class:`OutgoingRequest` and returns a :class:`PendingCall` whose
``on_resolved`` callback fires exactly once, whether the remote call
succeeded or not.  Two implementations live here:

1. **SessionBusTransport**: real D-Bus method calls on the user's session
   bus via ``dbus-fast`` (install the ``dbus`` extra).
2. **LocalTransport**: bounded in-memory deque that records requests and
   resolves them successfully on the next loop iteration.  Used for dry
   runs and tests.

Both refuse arguments with an embedded NUL; such a request resolves as a
failure without being sent.
"""

from __future__ import annotations

import asyncio
import collections
import logging
from collections.abc import Callable, Iterable
from typing import Any, Protocol, runtime_checkable

from launchenv.models.receivers import DEFAULT_RECEIVERS
from launchenv.models.requests import CallOutcome, OutgoingRequest

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Raised when a transport-level operation fails."""


# ---------------------------------------------------------------------------
# Pending calls
# ---------------------------------------------------------------------------


class PendingCall:
    """Handle for one in-flight request.

    Wraps an ``asyncio.Future`` resolving to a :class:`CallOutcome`.  A
    cancelled or failed future is reported as a failed outcome, so a
    resolution callback always receives a ``CallOutcome``.
    """

    def __init__(self, future: asyncio.Future[CallOutcome]) -> None:
        self._future = future
        self._watched = False

    @classmethod
    def resolved(
        cls,
        outcome: CallOutcome,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> PendingCall:
        """Return a handle that is already resolved with *outcome*."""
        loop = loop or asyncio.get_running_loop()
        future: asyncio.Future[CallOutcome] = loop.create_future()
        future.set_result(outcome)
        return cls(future)

    @property
    def done(self) -> bool:
        return self._future.done()

    def on_resolved(self, callback: Callable[[CallOutcome], None]) -> None:
        """Call *callback* with the outcome once the request resolves.

        The callback always runs on the event loop, never inline, even if
        the call has already resolved.  Only one callback may be attached.
        """
        if self._watched:
            raise TransportError("PendingCall already has a resolution callback")
        self._watched = True

        def _deliver(future: asyncio.Future[CallOutcome]) -> None:
            callback(_outcome_of(future))

        self._future.add_done_callback(_deliver)

    def __await__(self):
        return asyncio.shield(self._future).__await__()


def _outcome_of(future: asyncio.Future[CallOutcome]) -> CallOutcome:
    if future.cancelled():
        return CallOutcome.failure("call cancelled")
    exc = future.exception()
    if exc is not None:
        return CallOutcome.failure(f"{type(exc).__name__}: {exc}")
    return future.result()


@runtime_checkable
class Transport(Protocol):
    """Anything that can send an :class:`OutgoingRequest` asynchronously."""

    def submit(self, request: OutgoingRequest) -> PendingCall:
        """Send *request* without waiting and return its pending handle.

        Per-call failures must be reported through the handle, not raised.
        """
        ...


def has_embedded_nul(arguments: Iterable[Any]) -> bool:
    """Return ``True`` if any string in *arguments* contains ``\\x00``.

    Walks into mappings (keys and values) and sequences.
    """
    for arg in arguments:
        if isinstance(arg, str):
            if "\x00" in arg:
                return True
        elif isinstance(arg, dict):
            if has_embedded_nul(arg.keys()) or has_embedded_nul(arg.values()):
                return True
        elif isinstance(arg, (list, tuple)):
            if has_embedded_nul(arg):
                return True
    return False


# ---------------------------------------------------------------------------
# One-time signature registration
# ---------------------------------------------------------------------------

_signature_trees: dict[str, Any] = {}


def ensure_signatures_registered(
    signatures: Iterable[str] | None = None,
) -> dict[str, Any]:
    """Parse the receiver signatures into dbus-fast signature trees once.

    Idempotent and process-wide.  With no argument, registers the
    signatures of the default receivers.

    Raises
    ------
    TransportError
        If ``dbus-fast`` is not installed.
    """
    try:
        from dbus_fast import SignatureTree
    except ImportError as exc:
        raise TransportError(
            "dbus-fast is not installed. Install launchenv[dbus] for "
            "session bus support."
        ) from exc

    if signatures is None:
        signatures = [endpoint.signature for endpoint in DEFAULT_RECEIVERS.endpoints]
    for signature in signatures:
        if signature not in _signature_trees:
            _signature_trees[signature] = SignatureTree(signature)
            logger.debug("Registered D-Bus signature %r", signature)
    return _signature_trees


# ---------------------------------------------------------------------------
# Local transport
# ---------------------------------------------------------------------------


class LocalTransport:
    """In-memory transport that records requests instead of sending them.

    Parameters
    ----------
    max_local_queue:
        Maximum number of recorded requests.  Once full, further requests
        resolve as failures until :meth:`drain` is called.
    """

    def __init__(self, *, max_local_queue: int = 1024) -> None:
        self._max_local_queue = max_local_queue
        self._sent: collections.deque[OutgoingRequest] = collections.deque(
            maxlen=max_local_queue
        )
        logger.info(
            "Transport: using local in-memory queue (max_depth=%d).",
            max_local_queue,
        )

    @property
    def queue_depth(self) -> int:
        return len(self._sent)

    @property
    def sent(self) -> list[OutgoingRequest]:
        """Copy of the recorded requests, oldest first."""
        return list(self._sent)

    def submit(self, request: OutgoingRequest) -> PendingCall:
        loop = asyncio.get_running_loop()
        if has_embedded_nul(request.arguments):
            logger.warning(
                "Transport.submit: refusing %s call with embedded NUL.",
                request.endpoint.label,
            )
            return PendingCall.resolved(
                CallOutcome.failure("argument contains embedded NUL"), loop
            )

        if len(self._sent) >= self._max_local_queue:
            return PendingCall.resolved(
                CallOutcome.failure(
                    f"local transport queue is full (depth={len(self._sent)})"
                ),
                loop,
            )

        self._sent.append(request)
        logger.debug(
            "Transport.submit: queued %s.%s locally (depth=%d).",
            request.endpoint.interface,
            request.operation,
            len(self._sent),
        )
        future: asyncio.Future[CallOutcome] = loop.create_future()
        loop.call_soon(_set_if_pending, future, CallOutcome())
        return PendingCall(future)

    def drain(self) -> list[OutgoingRequest]:
        """Remove and return every recorded request."""
        drained = list(self._sent)
        self._sent.clear()
        return drained

    def __repr__(self) -> str:
        return f"LocalTransport(depth={len(self._sent)}, max={self._max_local_queue})"


def _set_if_pending(future: asyncio.Future[CallOutcome], outcome: CallOutcome) -> None:
    if not future.done():
        future.set_result(outcome)


# ---------------------------------------------------------------------------
# Session bus transport
# ---------------------------------------------------------------------------


class SessionBusTransport:
    """Sends requests as D-Bus method calls on the session bus.

    The connection is opened lazily by the first submitted request and
    shared by all later ones.

    Parameters
    ----------
    bus_address:
        Explicit bus address.  ``None`` uses the default session bus.
    call_timeout_seconds:
        Per-call reply timeout.  A call that times out resolves as failed.
    bus:
        An already connected ``dbus_fast.aio.MessageBus`` to use instead of
        opening a new connection.
    """

    def __init__(
        self,
        bus_address: str | None = None,
        *,
        call_timeout_seconds: float = 25.0,
        bus: Any | None = None,
    ) -> None:
        self._bus_address = bus_address
        self._timeout = call_timeout_seconds
        self._bus: Any | None = bus
        self._owns_bus = bus is None
        self._connecting: asyncio.Task[Any] | None = None

    @property
    def is_connected(self) -> bool:
        return self._bus is not None

    async def connect(self) -> Any:
        """Connect to the session bus if not already connected.

        Raises
        ------
        TransportError
            If dbus-fast is missing or the bus cannot be reached.
        """
        if self._bus is not None:
            return self._bus

        ensure_signatures_registered()
        from dbus_fast import BusType
        from dbus_fast.aio import MessageBus

        try:
            bus = MessageBus(bus_address=self._bus_address, bus_type=BusType.SESSION)
            self._bus = await bus.connect()
        except Exception as exc:
            raise TransportError(f"Cannot connect to session bus: {exc}") from exc
        logger.info("Transport: connected to session bus (%s).", self._bus_address or "default")
        return self._bus

    def submit(self, request: OutgoingRequest) -> PendingCall:
        loop = asyncio.get_running_loop()
        if has_embedded_nul(request.arguments):
            logger.warning(
                "Transport.submit: refusing %s call with embedded NUL.",
                request.endpoint.label,
            )
            return PendingCall.resolved(
                CallOutcome.failure("argument contains embedded NUL"), loop
            )
        return PendingCall(loop.create_task(self._call(request)))

    async def _connected(self) -> Any:
        if self._bus is not None:
            return self._bus
        if self._connecting is None:
            self._connecting = asyncio.get_running_loop().create_task(self.connect())
        return await self._connecting

    async def _call(self, request: OutgoingRequest) -> CallOutcome:
        endpoint = request.endpoint
        try:
            bus = await self._connected()
            from dbus_fast import Message, MessageType

            body = list(request.arguments)
            ensure_signatures_registered([endpoint.signature])[endpoint.signature].verify(body)
            message = Message(
                destination=endpoint.service,
                path=endpoint.object_path,
                interface=endpoint.interface,
                member=endpoint.method,
                signature=endpoint.signature,
                body=body,
            )
            reply = await asyncio.wait_for(bus.call(message), self._timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "%s: no reply within %.1fs", endpoint.label, self._timeout
            )
            return CallOutcome.failure(f"timed out after {self._timeout}s")
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s: call failed: %s", endpoint.label, exc)
            return CallOutcome.failure(str(exc))

        if reply is None:
            return CallOutcome.failure("no reply")
        if reply.message_type == MessageType.ERROR:
            detail = reply.body[0] if reply.body else ""
            logger.warning(
                "%s: %s %s", endpoint.label, reply.error_name, detail
            )
            return CallOutcome.failure(f"{reply.error_name}: {detail}".rstrip(": "))
        logger.debug("%s: %s.%s succeeded", endpoint.label, endpoint.interface, endpoint.method)
        return CallOutcome()

    def close(self) -> None:
        """Disconnect from the bus if this transport opened the connection."""
        if self._bus is not None and self._owns_bus:
            try:
                self._bus.disconnect()
            except Exception:
                logger.exception("Transport.close: error disconnecting from bus.")
        self._bus = None
        self._connecting = None

    async def __aenter__(self) -> SessionBusTransport:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "idle"
        return f"SessionBusTransport(address={self._bus_address!r}, {state})"
