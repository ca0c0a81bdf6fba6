from __future__ import annotations

import math
import threading
import time
from collections import deque
from typing import Any, Callable

from bounded_task_queue.config import get_settings
from bounded_task_queue.ops import metrics
from bounded_task_queue.utils.log import logger

from .errors import QueueClosed, TaskCleared
from .models import QueueStatus, TaskRequest


def _validate_capacity(capacity: Any) -> int:
    if isinstance(capacity, bool) or not isinstance(capacity, int):
        raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
    if capacity < 1:
        raise ValueError(f"capacity must be >= 1, got {capacity}")
    return capacity


def _validate_timeout(timeout_ms: Any) -> int:
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)):
        raise ValueError(f"timeout_ms must be a number of milliseconds, got {timeout_ms!r}")
    if timeout_ms < 0:
        raise ValueError(f"timeout_ms must be >= 0, got {timeout_ms}")
    # round up so a positive fraction of a millisecond still bounds the wait
    return math.ceil(timeout_ms)


class TaskQueueBase:
    """
    Bookkeeping shared by the asyncio and thread-backed queues.

    - `_backlog` is strict FIFO; `_in_flight` never exceeds `capacity`
    - both are only touched while holding `_lock`
    - subclasses provide `_claim()` (mark a future as started, False if the caller
      already cancelled it) and `_start()` (begin executing an admitted request)

    Every admitted request must eventually call `_finish()` exactly once.
    """

    def __init__(self, capacity: int | None = None, *, name: str = "default") -> None:
        s = get_settings()
        self._capacity = _validate_capacity(s.default_capacity if capacity is None else capacity)
        self._name = str(name or "default")
        self._lock = threading.Lock()
        self._backlog: deque[TaskRequest] = deque()
        self._in_flight = 0
        self._seq = 0
        self._closed = False
        logger.info(
            "queue_created",
            queue=self._name,
            capacity=self._capacity,
            kind=type(self).__name__,
        )

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    # --- hooks ---
    def _claim(self, req: TaskRequest) -> bool:
        raise NotImplementedError

    def _start(self, req: TaskRequest) -> None:
        raise NotImplementedError

    def _on_idle(self) -> None:
        return None

    # --- submission / admission ---
    def _enqueue(self, action: Callable[[], Any], timeout_ms: int | float | None, completion: Any) -> TaskRequest:
        if not callable(action):
            raise TypeError(f"action must be callable, got {type(action).__name__}")
        if timeout_ms is None:
            timeout_ms = get_settings().default_timeout_ms
        tmo = _validate_timeout(timeout_ms)
        with self._lock:
            if self._closed:
                raise QueueClosed(f"queue {self._name!r} is closed")
            self._seq += 1
            req = TaskRequest(task_id=self._seq, action=action, timeout_ms=tmo, completion=completion)
            self._backlog.append(req)
            depth = len(self._backlog)
            self._publish_depth()
        metrics.inc(metrics.tasks_submitted, self._name)
        logger.debug("task_submitted", queue=self._name, task_id=req.task_id, timeout_ms=tmo, backlog=depth)
        self._admit()
        return req

    def _admit(self) -> int:
        """
        Admission step: start backlog entries while capacity allows.

        Loops instead of re-invoking itself, so a deep backlog never deepens the stack.
        A no-op (returns 0) when the queue is full or the backlog is empty.
        """
        admitted: list[TaskRequest] = []
        discarded: list[TaskRequest] = []
        with self._lock:
            while self._in_flight < self._capacity and self._backlog:
                req = self._backlog.popleft()
                if not self._claim(req):
                    discarded.append(req)
                    continue
                self._in_flight += 1
                req.admitted_at = time.monotonic()
                admitted.append(req)
            running_n = self._in_flight
            if admitted or discarded:
                self._publish_depth()

        if not admitted and not discarded:
            return 0

        for req in discarded:
            logger.info("task_discarded_cancelled", queue=self._name, task_id=req.task_id)
        for req in admitted:
            metrics.observe(metrics.wait_seconds, self._name, (req.admitted_at or 0.0) - req.submitted_at)
            logger.debug("task_admitted", queue=self._name, task_id=req.task_id, running=running_n)
            self._start(req)
        if discarded and not admitted:
            self._check_idle()
        return len(admitted)

    def _finish(self, req: TaskRequest, outcome: str, *, admit_next: bool = True) -> None:
        with self._lock:
            self._in_flight = max(0, self._in_flight - 1)
            self._publish_depth()
        metrics.record_finished(self._name, outcome)
        if admit_next:
            self._admit()
        self._check_idle()

    def _publish_depth(self) -> None:
        # caller holds _lock, so concurrent finishers cannot publish stale snapshots
        metrics.set_depth(self._name, running_n=self._in_flight, queued_n=len(self._backlog))

    def _is_idle(self) -> bool:
        with self._lock:
            return self._in_flight == 0 and not self._backlog

    def _check_idle(self) -> None:
        if self._is_idle():
            self._on_idle()

    # --- public surface ---
    def get_status(self) -> QueueStatus:
        with self._lock:
            return QueueStatus(running=int(self._in_flight), queued=len(self._backlog))

    def clear(self, *, reject: bool | None = None) -> int:
        """
        Drop every request still waiting in the backlog and return how many were dropped.

        Running tasks are not affected. By default the dropped futures are abandoned:
        they never resolve or fail, so callers awaiting them must bring their own timeout.
        With `reject=True` (or TASKQ_CLEAR_REJECTS=1) each one fails with `TaskCleared`.
        """
        if reject is None:
            reject = bool(get_settings().clear_rejects)
        with self._lock:
            removed = list(self._backlog)
            self._backlog.clear()
            self._publish_depth()
        if reject:
            for req in removed:
                req.settle(error=TaskCleared(req.task_id))
        if removed:
            metrics.inc(metrics.tasks_cleared, self._name, amount=len(removed))
        logger.info("queue_cleared", queue=self._name, count=len(removed), rejected=bool(reject))
        self._check_idle()
        return len(removed)

    def close(self) -> None:
        """
        Stop accepting submissions. Running and backlogged tasks still complete.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            running_n, queued_n = self._in_flight, len(self._backlog)
        logger.info("queue_closed", queue=self._name, running=running_n, queued=queued_n)

    def __repr__(self) -> str:
        st = self.get_status()
        return (
            f"{type(self).__name__}(name={self._name!r}, capacity={self._capacity}, "
            f"running={st.running}, queued={st.queued})"
        )
