from __future__ import annotations


class TaskQueueError(RuntimeError):
    """Base class for failures synthesized by the queue itself."""


class TaskTimeout(TaskQueueError):
    """
    The caller stopped waiting for a task's outcome.

    The task body is not stopped; whatever it eventually produces is discarded.
    """

    def __init__(self, after_ms: int) -> None:
        self.after_ms = int(after_ms)
        super().__init__(f"Task timed out after {self.after_ms}ms")

    def __reduce__(self):
        return (type(self), (self.after_ms,))


class TaskCleared(TaskQueueError):
    """Raised into a backlogged task's future by `clear(reject=True)`."""

    def __init__(self, task_id: int) -> None:
        self.task_id = int(task_id)
        super().__init__(f"Task {self.task_id} was cleared from the queue before it started")

    def __reduce__(self):
        return (type(self), (self.task_id,))


class QueueClosed(TaskQueueError):
    pass
