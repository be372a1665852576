"""Unit tests for the transport bridge: pending calls, local queue, session bus."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from launchenv.bridge.transport import (
    LocalTransport,
    PendingCall,
    SessionBusTransport,
    Transport,
    TransportError,
    has_embedded_nul,
)
from launchenv.models.receivers import DEFAULT_RECEIVERS
from launchenv.models.requests import CallOutcome, OutgoingRequest


def _request(*arguments, endpoint=DEFAULT_RECEIVERS.launcher) -> OutgoingRequest:
    return OutgoingRequest(endpoint=endpoint, arguments=arguments)


# ---------------------------------------------------------------------------
# PendingCall
# ---------------------------------------------------------------------------


class TestPendingCall:
    @pytest.mark.asyncio
    async def test_callback_runs_on_loop_not_inline(self):
        pending = PendingCall.resolved(CallOutcome())
        seen: list[CallOutcome] = []
        pending.on_resolved(seen.append)
        assert seen == []
        await asyncio.sleep(0)
        assert seen == [CallOutcome()]

    @pytest.mark.asyncio
    async def test_exception_becomes_failed_outcome(self):
        future = asyncio.get_running_loop().create_future()
        pending = PendingCall(future)
        seen: list[CallOutcome] = []
        pending.on_resolved(seen.append)
        future.set_exception(OSError("broken pipe"))
        await asyncio.sleep(0)
        assert seen[0].ok is False
        assert "broken pipe" in seen[0].error

    @pytest.mark.asyncio
    async def test_single_callback_only(self):
        pending = PendingCall.resolved(CallOutcome())
        pending.on_resolved(lambda outcome: None)
        with pytest.raises(TransportError):
            pending.on_resolved(lambda outcome: None)

    @pytest.mark.asyncio
    async def test_awaitable(self):
        outcome = await PendingCall.resolved(CallOutcome.failure("nope"))
        assert outcome.error == "nope"


class TestEmbeddedNul:
    def test_detects_nested(self):
        assert has_embedded_nul(["a\x00"]) is True
        assert has_embedded_nul([{"K": "v\x00"}]) is True
        assert has_embedded_nul([{"K\x00": "v"}]) is True
        assert has_embedded_nul([["X=1", "Y=\x00"]]) is True

    def test_clean_arguments(self):
        assert has_embedded_nul(["a", {"K": "v"}, ["X=1"]]) is False
        assert has_embedded_nul([]) is False


# ---------------------------------------------------------------------------
# LocalTransport
# ---------------------------------------------------------------------------


class TestLocalTransport:
    def test_satisfies_protocol(self, local_transport):
        assert isinstance(local_transport, Transport)

    @pytest.mark.asyncio
    async def test_records_and_resolves(self, local_transport):
        outcome = await local_transport.submit(_request("FOO", "bar"))
        assert outcome.ok is True
        assert local_transport.queue_depth == 1
        assert local_transport.sent[0].arguments == ("FOO", "bar")

    @pytest.mark.asyncio
    async def test_refuses_embedded_nul(self, local_transport):
        outcome = await local_transport.submit(_request("FOO", "a\x00b"))
        assert outcome.ok is False
        assert "NUL" in outcome.error
        assert local_transport.queue_depth == 0

    @pytest.mark.asyncio
    async def test_full_queue_fails_call(self):
        transport = LocalTransport(max_local_queue=1)
        assert (await transport.submit(_request("A", "1"))).ok is True
        outcome = await transport.submit(_request("B", "2"))
        assert outcome.ok is False
        assert "full" in outcome.error

    @pytest.mark.asyncio
    async def test_drain_empties_queue(self, local_transport):
        await local_transport.submit(_request("A", "1"))
        drained = local_transport.drain()
        assert len(drained) == 1
        assert local_transport.queue_depth == 0


# ---------------------------------------------------------------------------
# SessionBusTransport (fake bus, real dbus-fast messages)
# ---------------------------------------------------------------------------


class _FakeBus:
    def __init__(self, reply=None, delay: float = 0.0) -> None:
        self.messages = []
        self._reply = reply
        self._delay = delay
        self.disconnected = False

    async def call(self, message):
        self.messages.append(message)
        if self._delay:
            await asyncio.sleep(self._delay)
        return self._reply

    def disconnect(self) -> None:
        self.disconnected = True


class TestSessionBusTransport:
    @pytest.fixture(autouse=True)
    def _dbus_fast(self):
        return pytest.importorskip("dbus_fast")

    def _ok_reply(self, dbus_fast):
        return SimpleNamespace(
            message_type=dbus_fast.MessageType.METHOD_RETURN, body=[], error_name=None
        )

    @pytest.mark.asyncio
    async def test_sends_method_call(self, _dbus_fast):
        bus = _FakeBus(self._ok_reply(_dbus_fast))
        transport = SessionBusTransport(bus=bus)
        outcome = await transport.submit(_request("FOO", "bar"))

        assert outcome.ok is True
        message = bus.messages[0]
        assert message.destination == "org.kde.klauncher5"
        assert message.path == "/KLauncher"
        assert message.interface == "org.kde.KLauncher"
        assert message.member == "setLaunchEnv"
        assert message.signature == "ss"
        assert message.body == ["FOO", "bar"]

    @pytest.mark.asyncio
    async def test_batch_signatures(self, _dbus_fast):
        bus = _FakeBus(self._ok_reply(_dbus_fast))
        transport = SessionBusTransport(bus=bus)
        bulk = _request({"A": "1"}, endpoint=DEFAULT_RECEIVERS.activation)
        strict = _request(["A=1"], endpoint=DEFAULT_RECEIVERS.systemd)
        assert (await transport.submit(bulk)).ok is True
        assert (await transport.submit(strict)).ok is True
        assert [m.signature for m in bus.messages] == ["a{ss}", "as"]

    @pytest.mark.asyncio
    async def test_error_reply_is_failed_outcome(self, _dbus_fast):
        reply = SimpleNamespace(
            message_type=_dbus_fast.MessageType.ERROR,
            error_name="org.freedesktop.DBus.Error.ServiceUnknown",
            body=["The name org.kde.klauncher5 was not provided by any .service files"],
        )
        transport = SessionBusTransport(bus=_FakeBus(reply))
        outcome = await transport.submit(_request("FOO", "bar"))
        assert outcome.ok is False
        assert "ServiceUnknown" in outcome.error

    @pytest.mark.asyncio
    async def test_timeout_is_failed_outcome(self, _dbus_fast):
        bus = _FakeBus(self._ok_reply(_dbus_fast), delay=1.0)
        transport = SessionBusTransport(bus=bus, call_timeout_seconds=0.01)
        outcome = await transport.submit(_request("FOO", "bar"))
        assert outcome.ok is False
        assert "timed out" in outcome.error

    @pytest.mark.asyncio
    async def test_embedded_nul_never_sent(self, _dbus_fast):
        bus = _FakeBus(self._ok_reply(_dbus_fast))
        transport = SessionBusTransport(bus=bus)
        outcome = await transport.submit(_request("FOO", "a\x00b"))
        assert outcome.ok is False
        assert bus.messages == []

    @pytest.mark.asyncio
    async def test_signature_mismatch_is_failed_outcome(self, _dbus_fast):
        bus = _FakeBus(self._ok_reply(_dbus_fast))
        transport = SessionBusTransport(bus=bus)
        outcome = await transport.submit(_request("only-one-arg"))
        assert outcome.ok is False
        assert bus.messages == []

    def test_close_keeps_injected_bus(self, _dbus_fast):
        bus = _FakeBus()
        transport = SessionBusTransport(bus=bus)
        transport.close()
        assert bus.disconnected is False
        assert transport.is_connected is False


class TestEnsureSignaturesRegistered:
    def test_idempotent(self):
        pytest.importorskip("dbus_fast")
        from launchenv.bridge.transport import ensure_signatures_registered

        first = ensure_signatures_registered()
        tree = first["a{ss}"]
        second = ensure_signatures_registered(["a{ss}"])
        assert second["a{ss}"] is tree
        assert {"ss", "a{ss}", "as"} <= set(second)
