import json
import math
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from sqlalchemy.exc import DBAPIError

from quppy.models.base_job import BaseJob
from quppy.models.params import EnqueueParams


DEFAULT_MAX_ATTEMPTS = 1
DEFAULT_TIME_LIMIT_SECONDS = 60

# Base of the randomized exponential backoff on store contention, in ms
BACKOFF_BASE_MS = 50

SQLITE_BUSY = 5
SQLITE_LOCKED = 6

# serialization_failure, deadlock_detected, lock_not_available
POSTGRES_CONTENTION_CODES = frozenset({"40001", "40P01", "55P03"})


def validate_job_id(job_id: int) -> None:
    if isinstance(job_id, bool) or not isinstance(job_id, int):
        raise ValueError("Job ID must be an integer")


def validate_attempts_remaining(attempts_remaining: int) -> None:
    if isinstance(attempts_remaining, bool) or not isinstance(
        attempts_remaining, int
    ):
        raise ValueError("attempts_remaining must be an integer")


def validate_status(status: str) -> None:
    if status is not None and not isinstance(status, str):
        raise ValueError("Status must be a string")


def parse_enqueue_params(
    payload: Any | None = None,
    max_attempts: int | None = None,
    time_limit_seconds: int | timedelta | None = None,
) -> EnqueueParams:
    provided_payload = payload

    if isinstance(provided_payload, BaseJob):
        payload = provided_payload.payload
        if max_attempts is None:
            max_attempts = provided_payload.max_attempts
        if time_limit_seconds is None:
            time_limit_seconds = provided_payload.time_limit_seconds

    if max_attempts is None:
        max_attempts = DEFAULT_MAX_ATTEMPTS
    if (
        isinstance(max_attempts, bool)
        or not isinstance(max_attempts, int)
        or max_attempts < 1
    ):
        raise ValueError("max_attempts must be a positive integer")

    if time_limit_seconds is None:
        time_limit_seconds = DEFAULT_TIME_LIMIT_SECONDS
    if isinstance(time_limit_seconds, timedelta):
        time_limit_seconds = int(time_limit_seconds.total_seconds())
    if (
        isinstance(time_limit_seconds, bool)
        or not isinstance(time_limit_seconds, int)
        or time_limit_seconds < 0
    ):
        raise ValueError("time_limit_seconds must be a non-negative integer")

    # Strings are encoded too, so that "1" comes back as "1" and not as 1
    serialized_payload = None
    if payload is not None:
        serialized_payload = json.dumps(payload)

    return EnqueueParams(
        serialized_payload=serialized_payload,
        max_attempts=max_attempts,
        time_limit_seconds=time_limit_seconds,
    )


def parse_follow_up(description: Any) -> dict[str, Any]:
    """Turn a follow-up job returned by a worker into ``enqueue()`` kwargs.

    A ``Job`` object is enqueued with its own options. A mapping may carry
    the ``max_attempts`` and ``time_limit_seconds`` options next to the
    payload fields; everything else becomes the payload. Any other value is
    used as the payload with default options.
    """
    if isinstance(description, BaseJob):
        return {"payload": description}

    if isinstance(description, Mapping):
        payload = dict(description)
        max_attempts = payload.pop("max_attempts", None)
        time_limit_seconds = payload.pop("time_limit_seconds", None)
        return {
            "payload": payload,
            "max_attempts": max_attempts,
            "time_limit_seconds": time_limit_seconds,
        }

    return {"payload": description}


def is_contention_error(exc: BaseException) -> bool:
    """Tell whether a database error was caused by concurrent access.

    Such errors are transient: the same statement is expected to succeed
    when retried a bit later.
    """
    if not isinstance(exc, DBAPIError):
        return False

    orig = exc.orig
    sqlite_code = getattr(orig, "sqlite_errorcode", None)
    if sqlite_code is not None:
        # Extended result codes keep the primary code in the low byte
        return (sqlite_code & 0xFF) in (SQLITE_BUSY, SQLITE_LOCKED)

    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in POSTGRES_CONTENTION_CODES:
        return True

    message = str(orig).lower()
    return "database is locked" in message or "table is locked" in message


@dataclass
class ContentionBackoff:
    """Randomized exponential backoff on store contention.

    Each worker loop owns its own instance. After ``n`` consecutive
    contention errors the loop should wait a random duration drawn
    uniformly from ``[0, base * e**n)`` milliseconds. The exponent is capped
    at ``max_exponent``.
    """

    base: int = BACKOFF_BASE_MS
    max_exponent: int = 5
    errors: int = 0

    def next_delay(self) -> float:
        """Register one more contention error and return the delay in seconds."""
        self.errors += 1
        exponent = min(self.errors, self.max_exponent)
        return random.random() * self.base * math.exp(exponent) / 1000

    def reset(self) -> None:
        self.errors = 0


def parse_finalize_params(
    job_or_id: BaseJob | int, attempts_remaining: int | None
) -> tuple[int, int]:
    if isinstance(job_or_id, BaseJob):
        job_id = job_or_id.id
        if attempts_remaining is None:
            attempts_remaining = job_or_id.attempts_remaining
    else:
        job_id = job_or_id

    validate_job_id(job_id)
    validate_attempts_remaining(attempts_remaining)
    return job_id, attempts_remaining


def iter_follow_ups(result: Any) -> list[Any]:
    """Normalize whatever a worker function returned into follow-up jobs.

    ``None`` means no follow-ups. A ``Job``, a mapping, a string or any
    value that is not iterable is a single follow-up.
    """
    if result is None:
        return []
    if isinstance(result, (BaseJob, Mapping, str, bytes)) or not isinstance(
        result, Iterable
    ):
        return [result]
    return list(result)


def set_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    """Tune every new SQLite connection for concurrent workers."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA synchronous = NORMAL")
    cursor.execute("PRAGMA busy_timeout = 5000")
    cursor.close()
