from .core_sync import Quppy
from .core_async import AsyncQuppy
from .base import StopWorker


__all__ = ["Quppy", "AsyncQuppy", "StopWorker"]
