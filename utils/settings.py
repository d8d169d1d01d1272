"""Runtime configuration read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from services.analysis.orchestrator import StageTimeouts
from services.analysis.retry_executor import MIN_DELAY_MS, RetryConfig


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise RuntimeError(f"{name} must be at least {minimum}, got {value}")
    return value


def _bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _list(env: Mapping[str, str], name: str, default: str = "") -> List[str]:
    raw = env.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    openai_model: str = "gpt-5"
    vision_model: str = "gpt-5-mini"
    research_model: str = "gpt-5"
    analysis_models: List[str] = field(default_factory=lambda: ["gpt-5", "gpt-4.1"])
    fallback_models: List[str] = field(default_factory=list)
    retry: RetryConfig = field(default_factory=RetryConfig)
    timeouts: StageTimeouts = field(default_factory=StageTimeouts)
    database_reset_on_startup: bool = False
    session_retention_seconds: int = 300
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from `env` (defaults to `os.environ`).

        Raises:
            RuntimeError: If any value is malformed or out of range.
        """
        env = os.environ if env is None else env
        try:
            retry = RetryConfig(
                max_retries=_int(env, "RETRY_MAX_RETRIES", 3),
                base_delay_ms=_int(env, "RETRY_BASE_DELAY_MS", 1000, minimum=1),
                max_delay_ms=_int(env, "RETRY_MAX_DELAY_MS", 10_000, minimum=MIN_DELAY_MS),
            )
        except ValueError as exc:
            raise RuntimeError(f"Invalid retry configuration: {exc}") from exc

        log_level = env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise RuntimeError(f"LOG_LEVEL must be a standard logging level, got {log_level!r}")

        return cls(
            openai_model=env.get("OPENAI_MODEL", "gpt-5").strip() or "gpt-5",
            vision_model=env.get("VISION_MODEL", "gpt-5-mini").strip() or "gpt-5-mini",
            research_model=env.get("RESEARCH_MODEL", "gpt-5").strip() or "gpt-5",
            analysis_models=_list(env, "ANALYSIS_MODELS", "gpt-5,gpt-4.1"),
            fallback_models=_list(env, "FALLBACK_MODELS"),
            retry=retry,
            timeouts=StageTimeouts(
                vision_ms=_int(env, "VISION_TIMEOUT_MS", 30_000, minimum=1),
                primary_ms=_int(env, "PRIMARY_TIMEOUT_MS", 120_000, minimum=1),
                multi_model_ms=_int(env, "MULTI_MODEL_TIMEOUT_MS", 90_000, minimum=1),
                research_ms=_int(env, "RESEARCH_TIMEOUT_MS", 60_000, minimum=1),
            ),
            database_reset_on_startup=_bool(env, "DATABASE_RESET_ON_STARTUP"),
            session_retention_seconds=_int(env, "SESSION_RETENTION_SECONDS", 300),
            log_level=log_level,
        )
