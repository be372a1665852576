"""UpdateLaunchEnvironmentJob — pushes an environment to the session services.

Lifecycle
---------
``CREATED`` → ``DISPATCHING`` → ``AWAITING_REPLIES`` → ``COMPLETED``

Construction only captures the snapshot and schedules :meth:`start` on the
event loop, so the caller always holds a live job before anything is sent.
``start`` plans and submits every request, counting each one.  Every
resolution, success or failure, counts down; the last one emits the
finished notification exactly once.  The job then drops its snapshot,
transport and callbacks and removes itself from the live-job registry.

Delivery is best effort: a missing or failing receiver never blocks the
others and never turns completion into an error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import Enum

from launchenv.bridge.transport import Transport
from launchenv.core.planner import plan_requests
from launchenv.core.snapshot import EnvironmentSnapshot
from launchenv.models.receivers import DEFAULT_RECEIVERS, ReceiverCatalog
from launchenv.models.requests import CallOutcome, JobSummary, OutgoingRequest

logger = logging.getLogger(__name__)

# Jobs keep themselves alive here between construction and completion.
_live_jobs: set[UpdateLaunchEnvironmentJob] = set()


class JobStateError(RuntimeError):
    """Raised when a job is used in a state that does not allow it."""


class JobState(str, Enum):
    """Lifecycle states of an update job."""

    CREATED = "created"
    DISPATCHING = "dispatching"
    AWAITING_REPLIES = "awaiting_replies"
    COMPLETED = "completed"


def live_job_count() -> int:
    """Number of jobs constructed but not yet completed."""
    return len(_live_jobs)


class UpdateLaunchEnvironmentJob:
    """Fan an environment snapshot out to every configured receiver.

    Parameters
    ----------
    environment:
        Variables to propagate.  Copied into an :class:`EnvironmentSnapshot`.
    transport:
        Where requests are submitted.
    receivers:
        Receiver endpoints to address.
    loop:
        Event loop to run on.  Defaults to the running loop.

    Raises
    ------
    JobStateError
        If no loop is given and none is running.
    """

    def __init__(
        self,
        environment: Mapping[str, str],
        transport: Transport,
        *,
        receivers: ReceiverCatalog = DEFAULT_RECEIVERS,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                raise JobStateError(
                    "UpdateLaunchEnvironmentJob needs a running event loop"
                ) from exc

        self._loop = loop
        self._environment: EnvironmentSnapshot | None = EnvironmentSnapshot(environment)
        self._transport: Transport | None = transport
        self._receivers: ReceiverCatalog | None = receivers
        self._state = JobState.CREATED
        self._finished_callbacks: list[Callable[[], None]] = []
        self._completion: asyncio.Future[JobSummary] = loop.create_future()

        self._pending = 0
        self._dispatched = 0
        self._succeeded = 0
        self._failed = 0
        self._skipped_names: list[str] = []
        self._non_strict_names: list[str] = []
        self._emitted = False

        _live_jobs.add(self)
        loop.call_soon(self.start)

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def pending_replies(self) -> int:
        return self._pending

    def add_finished_callback(self, callback: Callable[[], None]) -> None:
        """Register a zero-argument callback for the finished notification."""
        if self._state is JobState.COMPLETED:
            raise JobStateError("Job already finished")
        self._finished_callbacks.append(callback)

    async def wait(self) -> JobSummary:
        """Wait for the job to finish and return its summary."""
        return await asyncio.shield(self._completion)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Validate the snapshot and submit every request.

        Runs once, scheduled by the constructor.
        """
        if self._state is not JobState.CREATED:
            raise JobStateError(f"Job cannot start from state {self._state.value}")
        environment, receivers, transport = self._environment, self._receivers, self._transport
        if environment is None or receivers is None or transport is None:
            raise JobStateError("Job has already released its resources")
        self._state = JobState.DISPATCHING

        plan = plan_requests(environment, receivers)
        self._skipped_names = list(plan.skipped_names)
        self._non_strict_names = list(plan.non_strict_names)

        for request in plan.requests:
            self._submit(transport, request)

        logger.debug(
            "Dispatched %d requests for %d variables (%d skipped)",
            self._dispatched,
            len(environment),
            len(self._skipped_names),
        )
        self._state = JobState.AWAITING_REPLIES
        self._maybe_finish()

    def _submit(self, transport: Transport, request: OutgoingRequest) -> None:
        self._dispatched += 1
        try:
            pending = transport.submit(request)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "%s: submit failed: %s", request.endpoint.label, exc
            )
            self._failed += 1
            return

        self._pending += 1
        try:
            pending.on_resolved(self._on_resolved)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "%s: cannot watch pending call: %s", request.endpoint.label, exc
            )
            self._pending -= 1
            self._failed += 1

    def _on_resolved(self, outcome: CallOutcome) -> None:
        if self._pending <= 0:
            logger.error("Resolution received with no pending replies; ignoring")
            return
        self._pending -= 1
        if outcome.ok:
            self._succeeded += 1
        else:
            self._failed += 1
            logger.debug("Request failed: %s", outcome.error)
        self._maybe_finish()

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _maybe_finish(self) -> None:
        if self._state is not JobState.AWAITING_REPLIES or self._pending or self._emitted:
            return
        self._emitted = True
        self._state = JobState.COMPLETED

        summary = JobSummary(
            dispatched=self._dispatched,
            succeeded=self._succeeded,
            failed=self._failed,
            skipped_names=self._skipped_names,
            non_strict_names=self._non_strict_names,
        )
        logger.info(
            "Launch environment update finished: %d/%d calls succeeded",
            summary.succeeded,
            summary.dispatched,
        )

        callbacks, self._finished_callbacks = self._finished_callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Finished callback %r raised", callback)

        if not self._completion.done():
            self._completion.set_result(summary)
        self._release()

    def _release(self) -> None:
        self._environment = None
        self._transport = None
        self._receivers = None
        _live_jobs.discard(self)

    def __repr__(self) -> str:
        return (
            f"UpdateLaunchEnvironmentJob(state={self._state.value}, "
            f"pending={self._pending})"
        )


async def update_launch_environment(
    environment: Mapping[str, str],
    transport: Transport,
    *,
    receivers: ReceiverCatalog = DEFAULT_RECEIVERS,
) -> JobSummary:
    """Run an :class:`UpdateLaunchEnvironmentJob` and wait for it to finish."""
    job = UpdateLaunchEnvironmentJob(environment, transport, receivers=receivers)
    return await job.wait()
