import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .base_job import BaseJob, JobStatusValueType
from .raw_job import RawJob


logger = logging.getLogger(__name__)


@dataclass
class Job(BaseJob):
    id: int | None = field(default=None)
    """The unique identifier for the job.

    Assigned by the database on insert. Identifiers only grow, so a job
    enqueued later always has a larger ``id``."""
    payload: Any | None = field(default=None)
    """The payload of the job.

    Quppy never looks inside the payload. It is serialized with
    ``json.dumps()`` on enqueue and decoded with ``json.loads()`` when the
    job is read back."""
    status: JobStatusValueType | None = field(default=None)
    """The status of the job.

    Jobs are created "pending". A worker that claims a job moves it to
    "in_progress". From there it becomes "complete" on success, goes back
    to "pending" on failure while attempts remain, and becomes "failed" once
    the last attempt fails. "complete" and "failed" are final.
    """
    max_attempts: int = field(default=1)
    """The maximum number of times the job may be leased."""
    attempts_remaining: int = field(default=1)
    """How many more leases can be granted for this job.

    Decremented by exactly one every time the job is claimed. The value seen
    at claim time is also the version token used when the job is finalized:
    if another worker reclaimed the job in the meantime, the counter no
    longer matches and the finalize has no effect.
    """
    time_limit_seconds: int = field(default=60)
    """How long a lease stays valid, in seconds.

    Once a lease is older than this, another worker may claim the job again.
    The running work is not interrupted.
    """
    deadline: datetime | None = field(default=None)
    """The moment the current lease expires.

    Computed by the database clock. Represented as a datetime object in UTC.
    In database, this is stored as a Unix epoch timestamp in milliseconds.
    """
    error: str | None = field(default=None)
    """The error message of the final failed attempt."""
    _failed: bool = field(default=False, repr=False)

    @staticmethod
    def from_raw_job(raw_job: RawJob) -> "Job":
        payload = Job.deserialize_payload(raw_job.payload)

        # Convert epoch timestamps in milliseconds to datetime objects
        deadline_ts = (
            datetime.fromtimestamp(raw_job.deadline / 1000, timezone.utc)
            if raw_job.deadline is not None
            else None
        )

        return Job(
            id=raw_job.id,
            payload=payload,
            status=raw_job.status,
            max_attempts=raw_job.max_attempts,
            attempts_remaining=raw_job.attempts_remaining,
            time_limit_seconds=raw_job.time_limit_seconds,
            deadline=deadline_ts,
            error=raw_job.error,
        )

    @property
    def lease_expired(self) -> bool:
        """Whether the lease held on this job has run out.

        Long-running work can poll this to stop early, since once the lease
        is over another worker may already be processing the same job. The
        check uses the local clock, so it is only as accurate as the clock
        skew between this host and the database server.
        """
        if self.status != "in_progress" or self.deadline is None:
            return False
        return datetime.now(timezone.utc) >= self.deadline

    def fail(self, exception: str | Exception | None = None) -> None:
        """Fail the job without raising an exception.

        The job is finalized as a failed attempt once the ``dequeue()``
        context manager exits, and retried if it has attempts left.

        Warning: This method should be called inside the
        ``dequeue()`` context manager or a worker function only.

        Args:
            exception (str | Exception | None): The reason of the failure.
                Its string representation becomes the job error.
        """
        self._failed = True
        if isinstance(exception, Exception):
            self.error = str(exception) or exception.__class__.__name__
        elif exception:
            self.error = exception

    @staticmethod
    def deserialize_payload(serialized_payload: str | None) -> Any | None:
        if serialized_payload is None:
            return None

        try:
            return json.loads(serialized_payload)
        except json.JSONDecodeError:
            logger.debug(
                f"Failed to deserialize payload using JSON: {serialized_payload}"
            )
            return serialized_payload
