"""Shared test fixtures for launchenv."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import pytest

from launchenv.bridge.transport import LocalTransport, PendingCall
from launchenv.models.requests import CallOutcome, OutgoingRequest


class ScriptedTransport:
    """Transport whose calls stay pending until a test resolves them."""

    def __init__(self) -> None:
        self.submitted: list[OutgoingRequest] = []
        self.futures: list[asyncio.Future[CallOutcome]] = []

    def submit(self, request: OutgoingRequest) -> PendingCall:
        future: asyncio.Future[CallOutcome] = asyncio.get_running_loop().create_future()
        self.submitted.append(request)
        self.futures.append(future)
        return PendingCall(future)

    def resolve(self, index: int, outcome: CallOutcome | None = None) -> None:
        self.futures[index].set_result(outcome or CallOutcome())

    def fail(self, index: int, error: str = "org.freedesktop.DBus.Error.ServiceUnknown") -> None:
        self.futures[index].set_result(CallOutcome.failure(error))

    def resolve_all(self, order: Iterable[int] | None = None) -> None:
        for index in order if order is not None else range(len(self.futures)):
            if not self.futures[index].done():
                self.resolve(index)

    def labels(self) -> list[str]:
        return [request.endpoint.label for request in self.submitted]


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settle():
    """Coroutine function that lets scheduled loop callbacks run."""
    return _settle


@pytest.fixture
def scripted_transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def local_transport() -> LocalTransport:
    return LocalTransport(max_local_queue=64)


@pytest.fixture
def sample_environment() -> dict[str, str]:
    """Three valid variables with values every receiver accepts."""
    return {
        "PATH": "/usr/local/bin:/usr/bin",
        "XDG_CURRENT_DESKTOP": "KDE",
        "QT_QPA_PLATFORMTHEME": "kde",
    }


@pytest.fixture
def wide_console(monkeypatch):
    """Render CLI output at a fixed 200 columns so tables never wrap."""
    from rich.console import Console

    from launchenv.cli.commands import check, receivers, sync

    console = Console(width=200)
    for module in (check, receivers, sync):
        monkeypatch.setattr(module, "console", console)
    return console
