from .job import Job
from .queue_stats import QueueStats


__all__ = ["Job", "QueueStats"]
