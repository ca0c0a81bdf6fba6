from __future__ import annotations

import threading
import time
from concurrent.futures import Future
from typing import Any, Callable

from bounded_task_queue.ops import metrics
from bounded_task_queue.utils.log import logger, task_context

from .base import TaskQueueBase
from .errors import TaskTimeout
from .models import TaskRequest


class ThreadedTaskQueue(TaskQueueBase):
    """
    Same contract as `BoundedTaskQueue`, for blocking callables on OS threads.

    Each admitted request gets its own daemon worker thread plus, when a timeout is
    set, a `threading.Timer`. Worker and timer both report into the request's
    completion cell; the first report settles the caller's future and releases the
    slot, the second is dropped. A timed-out worker keeps running until its callable
    returns.

    submit() is thread-safe and returns a `concurrent.futures.Future`.
    """

    def __init__(self, capacity: int | None = None, *, name: str = "default") -> None:
        super().__init__(capacity, name=name)
        self._idle_cv = threading.Condition()

    def submit(self, action: Callable[[], Any], timeout_ms: int | float | None = None) -> Future:
        fut: Future = Future()
        self._enqueue(action, timeout_ms, fut)
        return fut

    def join(self, timeout: float | None = None) -> bool:
        """
        Block until nothing is running and nothing is queued.
        Returns False if `timeout` (seconds) elapsed first.
        """
        with self._idle_cv:
            return self._idle_cv.wait_for(self._is_idle, timeout=timeout)

    def __enter__(self) -> ThreadedTaskQueue:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
        self.join()

    # --- hooks ---
    def _claim(self, req: TaskRequest) -> bool:
        return req.completion.set_running_or_notify_cancel()

    def _start(self, req: TaskRequest) -> None:
        timer: threading.Timer | None = None
        if req.timeout_ms > 0:
            timer = threading.Timer(req.timeout_ms / 1000.0, self._on_timeout, args=(req,))
            timer.daemon = True
            timer.name = f"taskq.{self.name}.{req.task_id}.timer"
        worker = threading.Thread(
            target=self._work,
            args=(req, timer),
            name=f"taskq.{self.name}.{req.task_id}",
            daemon=True,
        )
        worker.start()
        if timer is not None:
            timer.start()

    def _on_idle(self) -> None:
        with self._idle_cv:
            self._idle_cv.notify_all()

    # --- execution ---
    def _work(self, req: TaskRequest, timer: threading.Timer | None) -> None:
        with task_context(queue_name=self.name, task_id=req.task_id):
            try:
                value = req.action()
            except BaseException as ex:
                self._report(req, outcome="failed", error=ex)
            else:
                self._report(req, outcome="succeeded", result=value)
            finally:
                if timer is not None:
                    timer.cancel()

    def _on_timeout(self, req: TaskRequest) -> None:
        with task_context(queue_name=self.name, task_id=req.task_id):
            if req.settle(error=TaskTimeout(req.timeout_ms)):
                logger.warning("task_timed_out", after_ms=req.timeout_ms)
                self._release(req, "timed_out")

    def _report(self, req: TaskRequest, *, outcome: str, result: Any = None, error: BaseException | None = None) -> None:
        if not req.settle(result=result, error=error):
            logger.debug("task_late_outcome_discarded", failed=error is not None)
            return
        if error is not None:
            logger.info("task_failed", error=repr(error))
        else:
            logger.debug("task_succeeded")
        self._release(req, outcome)

    def _release(self, req: TaskRequest, outcome: str) -> None:
        if req.admitted_at is not None:
            metrics.observe(metrics.task_seconds, self.name, time.monotonic() - req.admitted_at)
        self._finish(req, outcome)
