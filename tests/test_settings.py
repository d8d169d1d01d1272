"""Tests for utils/settings.py"""

import pytest

from utils.settings import Settings


def test_defaults():
    settings = Settings.from_env({})
    assert settings.openai_model == "gpt-5"
    assert settings.analysis_models == ["gpt-5", "gpt-4.1"]
    assert settings.retry.max_retries == 3
    assert settings.timeouts.primary_ms == 120_000
    assert settings.database_reset_on_startup is False
    assert settings.session_retention_seconds == 300


def test_overrides():
    settings = Settings.from_env(
        {
            "FALLBACK_MODELS": "gpt-4.1, gpt-4o ,",
            "RETRY_MAX_RETRIES": "1",
            "VISION_TIMEOUT_MS": "5000",
            "DATABASE_RESET_ON_STARTUP": "true",
            "LOG_LEVEL": "debug",
            "SESSION_RETENTION_SECONDS": "0",
        }
    )
    assert settings.fallback_models == ["gpt-4.1", "gpt-4o"]
    assert settings.retry.max_retries == 1
    assert settings.timeouts.vision_ms == 5000
    assert settings.database_reset_on_startup is True
    assert settings.log_level == "DEBUG"
    assert settings.session_retention_seconds == 0


@pytest.mark.parametrize(
    "env",
    [
        {"RETRY_MAX_RETRIES": "three"},
        {"RETRY_MAX_DELAY_MS": "500"},
        {"PRIMARY_TIMEOUT_MS": "0"},
        {"LOG_LEVEL": "chatty"},
        {"SESSION_RETENTION_SECONDS": "-5"},
    ],
)
def test_invalid_values(env):
    with pytest.raises(RuntimeError):
        Settings.from_env(env)
