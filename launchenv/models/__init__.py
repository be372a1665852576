"""Pydantic models for receivers, requests and job results."""

from launchenv.models.receivers import (
    DEFAULT_RECEIVERS,
    ReceiverCatalog,
    ReceiverEndpoint,
    ReceiverRole,
)
from launchenv.models.requests import CallOutcome, JobSummary, OutgoingRequest

__all__ = [
    "DEFAULT_RECEIVERS",
    "CallOutcome",
    "JobSummary",
    "OutgoingRequest",
    "ReceiverCatalog",
    "ReceiverEndpoint",
    "ReceiverRole",
]
