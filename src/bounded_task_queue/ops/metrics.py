from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from bounded_task_queue.config import get_settings

REGISTRY = CollectorRegistry()

# Latency buckets (seconds) spanning sub-millisecond tasks up to several minutes.
TASK_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
    300.0,
)

# Tasks
tasks_submitted = Counter(
    "taskq_tasks_submitted_total",
    "Tasks submitted",
    labelnames=("queue",),
    registry=REGISTRY,
)
tasks_finished = Counter(
    "taskq_tasks_finished_total",
    "Tasks finished by outcome",
    labelnames=("queue", "outcome"),
    registry=REGISTRY,
)
tasks_cleared = Counter(
    "taskq_tasks_cleared_total",
    "Backlogged tasks removed by clear()",
    labelnames=("queue",),
    registry=REGISTRY,
)

# Point-in-time state
running = Gauge("taskq_running", "Tasks currently executing", labelnames=("queue",), registry=REGISTRY)
queued = Gauge("taskq_queued", "Tasks waiting in the backlog", labelnames=("queue",), registry=REGISTRY)

# Durations
task_seconds = Histogram(
    "taskq_task_seconds",
    "Time from admission until the caller's result was settled",
    labelnames=("queue",),
    registry=REGISTRY,
    buckets=TASK_BUCKETS,
)
wait_seconds = Histogram(
    "taskq_wait_seconds",
    "Time spent in the backlog before admission",
    labelnames=("queue",),
    registry=REGISTRY,
    buckets=TASK_BUCKETS,
)

# "cancelled": the action's own asyncio task was cancelled, or the loop shut down mid-task
OUTCOMES = ("succeeded", "failed", "timed_out", "cancelled")


def enabled() -> bool:
    try:
        return bool(get_settings().metrics_enabled)
    except Exception:
        return False


def inc(counter: Counter, *labels: str, amount: float = 1.0) -> None:
    if not enabled():
        return
    with suppress(Exception):
        counter.labels(*labels).inc(amount)


def observe(hist: Histogram, queue: str, value: float) -> None:
    if not enabled():
        return
    with suppress(Exception):
        hist.labels(queue).observe(max(0.0, float(value)))


def record_finished(queue: str, outcome: str) -> None:
    if outcome not in OUTCOMES:
        raise ValueError(f"unknown task outcome {outcome!r}; expected one of {OUTCOMES}")
    inc(tasks_finished, queue, outcome)


def set_depth(queue: str, *, running_n: int, queued_n: int) -> None:
    if not enabled():
        return
    with suppress(Exception):
        running.labels(queue).set(int(running_n))
        queued.labels(queue).set(int(queued_n))


@contextmanager
def time_hist(h: Histogram, queue: str) -> Iterator[Callable[[], float]]:
    """
    Context manager to time a block and observe into a labelled histogram.
    Usage:
        with time_hist(task_seconds, "default") as elapsed:
            ...
        dt = elapsed()
    """
    t0 = time.perf_counter()
    dt: float | None = None

    def elapsed() -> float:
        return float(dt or 0.0)

    try:
        yield elapsed
    finally:
        dt = max(0.0, time.perf_counter() - t0)
        observe(h, queue, dt)


def render_latest() -> bytes:
    return generate_latest(REGISTRY)
