"""Tests for config/config_loader.py."""

from pathlib import Path

import pytest
import yaml

from config.config_loader import AppConfig, load_config


@pytest.fixture
def minimal_settings(tmp_path: Path) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    settings = {
        "provider": "claude",
        "models": {
            "claude": {
                "sdk": "anthropic",
                "model": "claude-sonnet-4-20250514",
                "api_key_env": "TEST_CLAUDE_KEY",
                "timeout_sec": 120,
            },
            "grok": {
                "sdk": "openai",
                "model": "grok-4",
                "api_key_env": "TEST_XAI_KEY",
                "timeout_sec": 60,
                "base_url": "https://api.x.ai/v1",
            },
        },
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path


def test_load_config_returns_app_config(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config, AppConfig)
    assert config.provider == "claude"
    assert config.models["grok"].base_url == "https://api.x.ai/v1"
    assert config.models["claude"].base_url is None


def test_defaults_when_sections_missing(minimal_settings):
    config = load_config(minimal_settings)
    assert config.generation.temperature == 0.8
    assert config.generation.synthesis_temperature == 0.4
    assert config.generation.length_max_tokens == {"short": 256, "medium": 1024, "long": 1536}
    assert config.retry.max_attempts == 2
    assert config.limits.question_max_chars == 500
    assert config.limits.daily_thread_limit == 10
    assert config.storage.db_path == Path("data/philagora.db")


def test_sections_override_defaults(tmp_path, minimal_settings):
    raw = yaml.safe_load(minimal_settings.read_text(encoding="utf-8"))
    raw["generation"] = {"inter_call_delay_sec": 0, "length_max_tokens": {"short": 128}}
    raw["retry"] = {"max_attempts": 3, "per_template": {"agora_synthesis": 1}}
    raw["limits"] = {"daily_thread_limit": 25}
    raw["storage"] = {"db_path": "tmp/x.db"}
    minimal_settings.write_text(yaml.dump(raw), encoding="utf-8")

    config = load_config(minimal_settings)

    assert config.generation.inter_call_delay_sec == 0
    assert config.generation.length_max_tokens["short"] == 128
    assert config.generation.length_max_tokens["long"] == 1536
    assert config.retry.bound_for("agora_synthesis") == 1
    assert config.retry.bound_for("debate_opening") == 3
    assert config.limits.daily_thread_limit == 25
    assert config.limits.question_min_chars == 10
    assert config.storage.db_path == Path("tmp/x.db")


def test_available_providers_follow_env(minimal_settings, monkeypatch):
    monkeypatch.setenv("TEST_CLAUDE_KEY", "sk-test")
    monkeypatch.delenv("TEST_XAI_KEY", raising=False)
    config = load_config(minimal_settings)
    assert config.available_providers == {"claude"}


def test_unknown_default_provider_rejected(minimal_settings):
    raw = yaml.safe_load(minimal_settings.read_text(encoding="utf-8"))
    raw["provider"] = "deepseek"
    minimal_settings.write_text(yaml.dump(raw), encoding="utf-8")
    with pytest.raises(ValueError, match="deepseek"):
        load_config(minimal_settings)


def test_missing_settings_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_bundled_settings_load():
    config = load_config()
    assert config.provider in config.models
    assert {m.sdk for m in config.models.values()} <= {"anthropic", "openai", "gemini"}
