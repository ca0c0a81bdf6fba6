from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from bounded_task_queue.config import get_settings

_ENV_KEYS = (
    "TASKQ_DEFAULT_CAPACITY",
    "TASKQ_DEFAULT_TIMEOUT_MS",
    "TASKQ_CLEAR_REJECTS",
    "TASKQ_METRICS_ENABLED",
    "TASKQ_LOG_DIR",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    for k in _ENV_KEYS:
        monkeypatch.delenv(k, raising=False)
    # keep a developer's local .env out of the picture
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
