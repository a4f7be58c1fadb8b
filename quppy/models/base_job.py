from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal


JobStatusValueType = Literal[
    "pending",
    "in_progress",
    "complete",
    "failed",
]


@dataclass
class BaseJob:
    id: int | None
    payload: Any | None
    status: JobStatusValueType | None
    max_attempts: int
    attempts_remaining: int
    time_limit_seconds: int
    deadline: datetime | None
    error: str | None
