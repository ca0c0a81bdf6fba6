"""
Bounded-concurrency task queues.

- `BoundedTaskQueue`: asyncio actions (coroutine functions), returns asyncio futures
- `ThreadedTaskQueue`: blocking callables on worker threads, returns concurrent futures

Both admit at most `capacity` tasks at once, keep the rest in a FIFO backlog, and
support a per-task timeout that abandons the wait without stopping the task.
"""

from __future__ import annotations

from .async_queue import BoundedTaskQueue
from .errors import QueueClosed, TaskCleared, TaskQueueError, TaskTimeout
from .models import QueueStatus, TaskRequest
from .thread_queue import ThreadedTaskQueue

__all__ = [
    "BoundedTaskQueue",
    "QueueClosed",
    "QueueStatus",
    "TaskCleared",
    "TaskQueueError",
    "TaskRequest",
    "TaskTimeout",
    "ThreadedTaskQueue",
]
