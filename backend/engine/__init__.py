"""
Engine package for queued transcription.
Contains the queue store, the single-worker dispatcher and the job executor.
"""

from engine.queue_store import QueueStore
from engine.dispatcher import Dispatcher
from engine.executor import JobExecutor

__all__ = [
    "QueueStore",
    "Dispatcher",
    "JobExecutor",
]
