"""Outgoing request, call outcome and job summary models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from launchenv.models.receivers import ReceiverEndpoint


class OutgoingRequest(BaseModel):
    """One method call to a receiver.

    ``arguments`` are in signature order.  A request is built during the
    dispatch pass and discarded once the transport has it.
    """

    model_config = ConfigDict(frozen=True)

    endpoint: ReceiverEndpoint
    arguments: tuple[Any, ...] = ()

    @property
    def receiver(self) -> str:
        return self.endpoint.service

    @property
    def operation(self) -> str:
        return self.endpoint.method


class CallOutcome(BaseModel):
    """How a dispatched request resolved."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> CallOutcome:
        return cls(ok=False, error=error)


class JobSummary(BaseModel):
    """Counts reported once an update job has finished.

    Informational only: a job always finishes, however many calls failed.
    """

    model_config = ConfigDict(frozen=True)

    dispatched: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped_names: list[str] = []  # invalid identifiers, sent nowhere
    non_strict_names: list[str] = []  # left out of the strict batch only
