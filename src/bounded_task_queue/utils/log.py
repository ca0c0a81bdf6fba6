from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

from bounded_task_queue.config import get_settings

queue_name_var: ContextVar[str | None] = ContextVar("queue_name", default=None)
task_id_var: ContextVar[int | None] = ContextVar("task_id", default=None)


@contextmanager
def task_context(*, queue_name: str | None, task_id: int | None) -> Iterator[None]:
    """
    Bind queue/task identifiers for every log event emitted inside the block.

    asyncio tasks copy the current context when they are created, so entering this
    around `create_task()` tags everything the task body logs as well.
    """
    q_tok = queue_name_var.set(queue_name)
    t_tok = task_id_var.set(task_id)
    try:
        yield
    finally:
        task_id_var.reset(t_tok)
        queue_name_var.reset(q_tok)


def _log_path() -> Path | None:
    s = get_settings()
    if s.log_dir is None:
        return None
    return Path(s.log_dir) / "taskq.log"


def add_contextvars(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    qn = queue_name_var.get()
    tid = task_id_var.get()
    if qn:
        event_dict.setdefault("queue", qn)
    if tid is not None:
        event_dict.setdefault("task_id", tid)
    return event_dict


def rename_event_to_msg(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    if "msg" not in event_dict and "event" in event_dict:
        event_dict["msg"] = event_dict.pop("event")
    return event_dict


_PKG = "bounded_task_queue"

_PRE_CHAIN = [
    structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
    structlog.stdlib.add_log_level,
    add_contextvars,
    structlog.processors.format_exc_info,
    rename_event_to_msg,
]


def _build_logger() -> structlog.stdlib.BoundLogger:
    """
    Package-private structlog chain.

    Bound directly to the `bounded_task_queue` stdlib logger, so it never touches the
    global `structlog.configure()` state of the host application. Records carry the
    event dict as `record.msg`; `configure_logging()` installs a formatter that renders
    it as JSON.
    """
    pkg = logging.getLogger(_PKG)
    if not any(isinstance(h, logging.NullHandler) for h in pkg.handlers):
        pkg.addHandler(logging.NullHandler())
    return structlog.wrap_logger(
        pkg,
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            *_PRE_CHAIN,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
    )


logger = _build_logger()


def configure_logging(level: str | None = None, *, force: bool = False) -> logging.Logger:
    """
    Opt-in handler setup for applications that want the queue's own JSON log lines.

    Attaches a stderr handler (plus a rotating file under TASKQ_LOG_DIR when set) to the
    package logger and stops propagation so events are not printed twice by root
    handlers. Idempotent unless `force=True`.
    """
    s = get_settings()
    pkg = logging.getLogger(_PKG)
    pkg.setLevel(str(level or s.log_level).upper())

    if getattr(pkg, "_bounded_task_queue_configured", False) and not force:
        return pkg

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=_PRE_CHAIN,
    )

    for h in list(pkg.handlers):
        pkg.removeHandler(h)
        with suppress(Exception):
            h.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    pkg.addHandler(stream_handler)

    log_path = _log_path()
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(log_path),
            maxBytes=int(s.log_max_bytes),
            backupCount=int(s.log_backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        pkg.addHandler(file_handler)

    pkg.propagate = False
    pkg._bounded_task_queue_configured = True
    return pkg


def set_log_level(level: str) -> None:
    """
    Best-effort runtime log level override.
    Does not change handlers/formatters; only raises/lowers filtering level.
    """
    try:
        lvl = getattr(logging, str(level).upper(), logging.INFO)
        pkg = logging.getLogger(_PKG)
        pkg.setLevel(lvl)
        for h in pkg.handlers:
            with suppress(Exception):
                h.setLevel(lvl)
    except Exception:
        # keep existing configuration
        return
