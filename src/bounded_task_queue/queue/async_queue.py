from __future__ import annotations

import asyncio
import inspect
from functools import partial
from typing import Any, Awaitable, Callable

from bounded_task_queue.ops import metrics
from bounded_task_queue.utils.log import logger, task_context

from .base import TaskQueueBase
from .errors import TaskTimeout
from .models import TaskRequest


class BoundedTaskQueue(TaskQueueBase):
    """
    asyncio task runner with a concurrency ceiling.

    - submit() appends to a FIFO backlog and returns an `asyncio.Future` right away
    - at most `capacity` actions run at once; the rest wait in submission order
    - a per-task timeout fails the caller's future with `TaskTimeout` but leaves the
      action running; its late outcome is consumed and dropped

    All methods must be used from the event loop that owns the queue.
    """

    def __init__(self, capacity: int | None = None, *, name: str = "default") -> None:
        super().__init__(capacity, name=name)
        self._runners: set[asyncio.Task] = set()
        self._idle_waiters: list[asyncio.Future] = []

    def submit(
        self,
        action: Callable[[], Awaitable[Any] | Any],
        timeout_ms: int | float | None = None,
    ) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        fut: asyncio.Future = loop.create_future()
        self._enqueue(action, timeout_ms, fut)
        return fut

    async def run(self, action: Callable[[], Awaitable[Any] | Any], timeout_ms: int | float | None = None) -> Any:
        """Submit and await in one step."""
        return await self.submit(action, timeout_ms)

    async def join(self) -> None:
        """
        Wait until nothing is running and nothing is queued.

        Timed-out actions whose results were already abandoned are not waited for.
        """
        loop = asyncio.get_running_loop()
        while not self._is_idle():
            waiter = loop.create_future()
            self._idle_waiters.append(waiter)
            await waiter

    async def __aenter__(self) -> BoundedTaskQueue:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.close()
        await self.join()

    # --- hooks ---
    def _claim(self, req: TaskRequest) -> bool:
        return not req.completion.done()

    def _start(self, req: TaskRequest) -> None:
        with task_context(queue_name=self.name, task_id=req.task_id):
            runner = asyncio.get_running_loop().create_task(
                self._execute(req), name=f"taskq.{self.name}.{req.task_id}"
            )
        self._runners.add(runner)
        runner.add_done_callback(self._runners.discard)

    def _on_idle(self) -> None:
        waiters, self._idle_waiters = self._idle_waiters, []
        for w in waiters:
            if not w.done():
                w.set_result(None)

    # --- execution ---
    async def _execute(self, req: TaskRequest) -> None:
        outcome = "failed"
        admit_next = True
        try:
            with metrics.time_hist(metrics.task_seconds, self.name):
                outcome = await self._race(req)
        except asyncio.CancelledError:
            # the loop is shutting down; do not start anything new
            req.cancel()
            outcome = "cancelled"
            admit_next = False
            raise
        finally:
            self._finish(req, outcome, admit_next=admit_next)

    async def _race(self, req: TaskRequest) -> str:
        try:
            produced = req.action()
        except Exception as ex:
            req.settle(error=ex)
            logger.info("task_failed", error=repr(ex))
            return "failed"

        if not inspect.isawaitable(produced):
            req.settle(result=produced)
            logger.debug("task_succeeded")
            return "succeeded"

        work = asyncio.ensure_future(produced)
        timeout_s = req.timeout_ms / 1000.0 if req.timeout_ms > 0 else None
        done, _ = await asyncio.wait({work}, timeout=timeout_s)

        if not done:
            work.add_done_callback(partial(self._discard_late, req.task_id))
            req.settle(error=TaskTimeout(req.timeout_ms))
            logger.warning("task_timed_out", after_ms=req.timeout_ms)
            return "timed_out"

        if work.cancelled():
            req.cancel()
            logger.info("task_cancelled")
            return "cancelled"

        ex = work.exception()
        if ex is not None:
            req.settle(error=ex)
            logger.info("task_failed", error=repr(ex))
            return "failed"

        req.settle(result=work.result())
        logger.debug("task_succeeded")
        return "succeeded"

    def _discard_late(self, task_id: int, work: asyncio.Future) -> None:
        # Retrieving the exception keeps asyncio from reporting it as never retrieved.
        failed = False if work.cancelled() else work.exception() is not None
        logger.debug(
            "task_late_outcome_discarded",
            queue=self.name,
            task_id=task_id,
            failed=failed,
        )
