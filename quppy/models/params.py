from dataclasses import dataclass


@dataclass
class EnqueueParams:
    serialized_payload: str | None
    max_attempts: int
    time_limit_seconds: int
