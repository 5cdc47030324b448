"""Runtime configuration resolved from the environment.

Entry points call :func:`load_config` after ``python-dotenv`` has loaded a
local ``.env``. Library code receives the resulting :class:`AssistantConfig`
through :class:`~bookkeeping_assistant.pipeline.AssistantContext` and never
reads the environment itself.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "Asia/Taipei"
DEFAULT_PAYMENT_METHOD = "刷卡"
DEFAULT_ACTION = "支出"
DEFAULT_USER_TYPE = "J"


@dataclass(frozen=True, slots=True)
class AssistantConfig:
    database_url: str | None = None
    timezone: str = DEFAULT_TIMEZONE
    fuzzy_threshold: float = 0.6
    accept_threshold: float = 0.7
    catalog_timeout: float = 5.0
    default_payment_method: str = DEFAULT_PAYMENT_METHOD
    default_action: str = DEFAULT_ACTION

    def tzinfo(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo(DEFAULT_TIMEZONE)


def _env_float(env: Mapping[str, str], key: str, default: float, *, lo: float, hi: float) -> float:
    raw = env.get(key)
    try:
        value = float(raw) if raw else default
    except ValueError:
        return default
    if not lo <= value <= hi:
        return default
    return value


def load_config(env: Mapping[str, str] | None = None) -> AssistantConfig:
    """Build an :class:`AssistantConfig` from ``env`` (defaults to ``os.environ``).

    Malformed or out-of-range numeric values fall back to their defaults.
    """

    src = os.environ if env is None else env
    return AssistantConfig(
        database_url=src.get("DATABASE_URL") or None,
        timezone=src.get("BOOKKEEPING_TIMEZONE") or DEFAULT_TIMEZONE,
        fuzzy_threshold=_env_float(src, "BOOKKEEPING_FUZZY_THRESHOLD", 0.6, lo=0.0, hi=1.0),
        accept_threshold=_env_float(src, "BOOKKEEPING_ACCEPT_THRESHOLD", 0.7, lo=0.0, hi=1.0),
        catalog_timeout=_env_float(src, "BOOKKEEPING_CATALOG_TIMEOUT", 5.0, lo=0.01, hi=600.0),
    )


__all__ = [
    "AssistantConfig",
    "DEFAULT_ACTION",
    "DEFAULT_PAYMENT_METHOD",
    "DEFAULT_TIMEZONE",
    "DEFAULT_USER_TYPE",
    "load_config",
]
