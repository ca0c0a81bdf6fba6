from __future__ import annotations

import threading
import time
from concurrent.futures import InvalidStateError
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True, slots=True)
class QueueStatus:
    running: int
    queued: int

    def as_dict(self) -> dict[str, int]:
        return {"running": int(self.running), "queued": int(self.queued)}


@dataclass(slots=True, eq=False)
class TaskRequest:
    """
    One submitted unit of work.

    `completion` is either an `asyncio.Future` or a `concurrent.futures.Future`; it is
    only ever written through `settle()` / `cancel()`. The first of those calls wins and
    returns True; later calls return False and leave the future untouched. Winning does
    not guarantee delivery: a future the caller already cancelled stays cancelled.
    """

    task_id: int
    action: Callable[[], Any]
    timeout_ms: int
    completion: Any
    submitted_at: float = field(default_factory=time.monotonic)
    admitted_at: float | None = None
    _settle_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _settled: bool = field(default=False, repr=False)

    @property
    def settled(self) -> bool:
        return self._settled

    def settle(self, *, result: Any = None, error: BaseException | None = None) -> bool:
        with self._settle_lock:
            if self._settled:
                return False
            self._settled = True
        fut = self.completion
        if fut.done():
            # caller cancelled its future; nothing left to deliver
            return True
        try:
            if error is not None:
                fut.set_exception(error)
            else:
                fut.set_result(result)
        except InvalidStateError:
            # lost a race with a cross-thread cancel()
            pass
        return True

    def cancel(self) -> bool:
        with self._settle_lock:
            if self._settled:
                return False
            self._settled = True
        self.completion.cancel()
        return True
