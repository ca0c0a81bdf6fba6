"""
Settings for the task queue.

  - `public_config.py` holds the env-backed pydantic model
  - `settings.py` exposes `get_settings()` (cached; call `get_settings.cache_clear()` after env changes)
"""

from __future__ import annotations

from .settings import ConfigError as ConfigError
from .settings import Settings as Settings
from .settings import get_safe_config_report as get_safe_config_report
from .settings import get_settings as get_settings
