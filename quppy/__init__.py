from .core import Quppy, AsyncQuppy, StopWorker
from .models import Job, QueueStats


__all__ = ["Quppy", "AsyncQuppy", "StopWorker", "Job", "QueueStats"]
