from __future__ import annotations

import asyncio
import threading

import pytest

from bounded_task_queue import BoundedTaskQueue, TaskTimeout, ThreadedTaskQueue
from bounded_task_queue.config import get_settings
from bounded_task_queue.ops import metrics


def _sample(name: str, **labels: str) -> float | None:
    return metrics.REGISTRY.get_sample_value(name, labels)


def test_counters_by_outcome() -> None:
    async def ok():
        return "ok"

    async def bad():
        raise RuntimeError("x")

    async def slow():
        await asyncio.sleep(0.2)

    async def main() -> None:
        q = BoundedTaskQueue(2, name="metrics-async")
        await q.submit(ok)
        with pytest.raises(RuntimeError):
            await q.submit(bad)
        with pytest.raises(TaskTimeout):
            await q.submit(slow, 10)

    asyncio.run(main())

    assert _sample("taskq_tasks_submitted_total", queue="metrics-async") == 3.0
    for outcome in ("succeeded", "failed", "timed_out"):
        assert outcome in metrics.OUTCOMES
        assert _sample("taskq_tasks_finished_total", queue="metrics-async", outcome=outcome) == 1.0
    assert _sample("taskq_task_seconds_count", queue="metrics-async") == 3.0
    assert _sample("taskq_wait_seconds_count", queue="metrics-async") == 3.0
    assert _sample("taskq_running", queue="metrics-async") == 0.0


def test_cleared_counter_and_exposition() -> None:
    q = ThreadedTaskQueue(1, name="metrics-thread")
    gate = threading.Event()
    first = q.submit(lambda: gate.wait(timeout=2))
    q.submit(lambda: None)
    q.submit(lambda: None)
    assert q.clear() == 2
    gate.set()
    first.result(timeout=2)
    assert q.join(timeout=2) is True

    assert _sample("taskq_tasks_cleared_total", queue="metrics-thread") == 2.0
    body = metrics.render_latest().decode("utf-8")
    assert 'taskq_tasks_submitted_total{queue="metrics-thread"} 3.0' in body
    assert "taskq_task_seconds_bucket" in body


def test_metrics_can_be_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKQ_METRICS_ENABLED", "0")
    get_settings.cache_clear()

    q = ThreadedTaskQueue(1, name="metrics-off")
    assert q.submit(lambda: 1).result(timeout=2) == 1
    assert q.join(timeout=2) is True
    assert _sample("taskq_tasks_submitted_total", queue="metrics-off") is None


def test_depth_gauges_settle_after_concurrent_finishes() -> None:
    q = ThreadedTaskQueue(8, name="metrics-depth")
    start = threading.Barrier(8)

    def racer():
        start.wait(timeout=2)
        return 1

    futs = [q.submit(racer) for _ in range(8)]
    futs += [q.submit(lambda: 1) for _ in range(40)]
    assert sum(f.result(timeout=5) for f in futs) == 48
    assert q.join(timeout=5) is True

    assert _sample("taskq_running", queue="metrics-depth") == 0.0
    assert _sample("taskq_queued", queue="metrics-depth") == 0.0
    assert _sample("taskq_tasks_finished_total", queue="metrics-depth", outcome="succeeded") == 48.0


def test_backlog_depth_is_published_on_submit() -> None:
    gate = threading.Event()
    q = ThreadedTaskQueue(1, name="metrics-backlog")
    first = q.submit(lambda: gate.wait(timeout=2))
    q.submit(lambda: None)
    q.submit(lambda: None)
    assert _sample("taskq_running", queue="metrics-backlog") == 1.0
    assert _sample("taskq_queued", queue="metrics-backlog") == 2.0
    gate.set()
    first.result(timeout=2)
    assert q.join(timeout=2) is True
    assert _sample("taskq_queued", queue="metrics-backlog") == 0.0


def test_unknown_outcome_is_rejected() -> None:
    with pytest.raises(ValueError, match="unknown task outcome"):
        metrics.record_finished("metrics-outcomes", "exploded")
    metrics.record_finished("metrics-outcomes", "cancelled")
    assert _sample("taskq_tasks_finished_total", queue="metrics-outcomes", outcome="cancelled") == 1.0
    assert _sample("taskq_tasks_finished_total", queue="metrics-outcomes", outcome="exploded") is None
