from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from .public_config import PublicConfig

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Settings view (dot-access) over the pydantic model.
    """

    public: PublicConfig

    def __getattr__(self, name: str) -> Any:
        return getattr(self.public, name)


def _validate(s: Settings) -> None:
    problems: list[str] = []
    if int(s.public.default_capacity) < 1:
        problems.append("TASKQ_DEFAULT_CAPACITY must be >= 1")
    if int(s.public.default_timeout_ms) < 0:
        problems.append("TASKQ_DEFAULT_TIMEOUT_MS must be >= 0")
    if str(s.public.log_level).upper() not in _LOG_LEVELS:
        problems.append(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}")
    if int(s.public.log_max_bytes) <= 0:
        problems.append("LOG_MAX_BYTES must be > 0")
    if problems:
        raise ConfigError("Invalid task queue configuration: " + "; ".join(problems))


def get_safe_config_report() -> dict[str, Any]:
    """
    Deterministic config report (paths are stringified for stable JSON output).
    """
    s = get_settings()
    out: dict[str, Any] = {}
    for k, v in s.public.model_dump().items():
        out[k] = str(v) if hasattr(v, "__fspath__") else v
    return out


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings(public=PublicConfig())
    _validate(s)
    return s
