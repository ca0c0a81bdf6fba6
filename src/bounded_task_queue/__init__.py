"""
bounded_task_queue: run at most N tasks at once, queue the rest in order.

    queue = BoundedTaskQueue(2)
    result = await queue.submit(fetch_page, timeout_ms=500)

Note: `clear()` abandons backlogged futures by default; they never settle.
"""

from __future__ import annotations

from bounded_task_queue.queue import (
    BoundedTaskQueue,
    QueueClosed,
    QueueStatus,
    TaskCleared,
    TaskQueueError,
    TaskTimeout,
    ThreadedTaskQueue,
)

__version__ = "0.1.0"

__all__ = [
    "BoundedTaskQueue",
    "QueueClosed",
    "QueueStatus",
    "TaskCleared",
    "TaskQueueError",
    "TaskTimeout",
    "ThreadedTaskQueue",
    "__version__",
]
