"""Request planning — turns a snapshot into the calls an update job makes.

Planning is pure: nothing is sent here.  For every variable with a valid
name, each per-pair receiver gets its own ``(name, value)`` call and the
pair joins the bulk mapping.  Values the systemd grammar accepts are also
added to the strict ``NAME=VALUE`` list.  The two batch requests are
always planned, even when empty.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict

from launchenv.core.validator import (
    is_strictly_transmissible_value,
    is_valid_identifier,
)
from launchenv.models.receivers import DEFAULT_RECEIVERS, ReceiverCatalog
from launchenv.models.requests import OutgoingRequest

logger = logging.getLogger(__name__)


class RequestPlan(BaseModel):
    """Every request for one update, plus the names that were held back."""

    model_config = ConfigDict(frozen=True)

    per_pair: list[OutgoingRequest] = []
    bulk: OutgoingRequest
    strict: OutgoingRequest
    skipped_names: list[str] = []
    non_strict_names: list[str] = []

    @property
    def requests(self) -> list[OutgoingRequest]:
        """All requests in dispatch order: per-pair first, then the batches."""
        return [*self.per_pair, self.bulk, self.strict]

    @property
    def request_count(self) -> int:
        return len(self.per_pair) + 2


def plan_requests(
    environment: Mapping[str, str],
    receivers: ReceiverCatalog = DEFAULT_RECEIVERS,
) -> RequestPlan:
    """Build the :class:`RequestPlan` for *environment*."""
    per_pair: list[OutgoingRequest] = []
    bulk_env: dict[str, str] = {}
    strict_updates: list[str] = []
    skipped: list[str] = []
    non_strict: list[str] = []

    for name, value in environment.items():
        if not is_valid_identifier(name):
            logger.warning(
                "Skipping syncing of environment variable %r as name contains "
                "unsupported characters",
                name,
            )
            skipped.append(name)
            continue

        for endpoint in receivers.per_pair:
            per_pair.append(OutgoingRequest(endpoint=endpoint, arguments=(name, value)))

        bulk_env[name] = value

        if not is_strictly_transmissible_value(value):
            logger.warning(
                "Skipping syncing of environment variable %r to %s as value "
                "contains unsupported characters",
                name,
                receivers.systemd.label,
            )
            non_strict.append(name)
            continue
        strict_updates.append(f"{name}={value}")

    return RequestPlan(
        per_pair=per_pair,
        bulk=OutgoingRequest(endpoint=receivers.activation, arguments=(bulk_env,)),
        strict=OutgoingRequest(endpoint=receivers.systemd, arguments=(strict_updates,)),
        skipped_names=skipped,
        non_strict_names=non_strict,
    )
