"""Configuration helpers for the assistant relay service."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional


DEFAULT_RUN_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_RUN_TIMEOUT_SECONDS = 30.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if math.isfinite(value) else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    """Centralized environment-driven configuration.

    Values are read when the instance is created, so tests can reload the module
    (or build a fresh ``Settings()``) after patching the environment.
    """

    openai_api_key: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    openai_base_url: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL"))
    # Execution context that processes every run (the configured assistant).
    assistant_id: Optional[str] = field(default_factory=lambda: os.getenv("ASSISTANT_ID"))
    run_poll_interval_seconds: float = field(
        default_factory=lambda: _env_float("RUN_POLL_INTERVAL_SECONDS", DEFAULT_RUN_POLL_INTERVAL_SECONDS)
    )
    run_timeout_seconds: float = field(default_factory=lambda: _env_float("RUN_TIMEOUT_SECONDS", DEFAULT_RUN_TIMEOUT_SECONDS))
    inline_summary_max_chars: int = field(
        default_factory=lambda: _env_int("INLINE_SUMMARY_MAX_CHARS", 20_000)
    )
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def __post_init__(self) -> None:
        # The polling deadline must stay finite and positive; the interval may be zero.
        if not math.isfinite(self.run_timeout_seconds) or self.run_timeout_seconds <= 0:
            self.run_timeout_seconds = DEFAULT_RUN_TIMEOUT_SECONDS
        if not math.isfinite(self.run_poll_interval_seconds) or self.run_poll_interval_seconds < 0:
            self.run_poll_interval_seconds = DEFAULT_RUN_POLL_INTERVAL_SECONDS


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return Settings()


settings = get_settings()
