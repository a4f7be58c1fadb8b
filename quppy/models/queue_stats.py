from dataclasses import dataclass


@dataclass
class QueueStats:
    total: int
    pending: int
    in_progress: int
    complete: int
    failed: int

    @staticmethod
    def from_row(row: tuple) -> "QueueStats":
        total, pending, in_progress, complete, failed = row
        # SUM() over an empty table yields NULL
        return QueueStats(
            total=total or 0,
            pending=pending or 0,
            in_progress=in_progress or 0,
            complete=complete or 0,
            failed=failed or 0,
        )
