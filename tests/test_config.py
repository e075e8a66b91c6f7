"""Tests for configuration loading."""

import os
import tempfile

import pytest
import yaml

from job_board.config import AppConfig, load_config, validate_config


@pytest.fixture
def config_file():
    """Create a temporary config file."""
    config_data = {
        "backend": {
            "mode": "rest",
            "url": "https://project.example.co",
            "anon_key": "anon-key",
        },
        "auth": {"rate_limit_cooldown_minutes": 30},
        "web": {"session_secret": "not-the-default", "cors_origins": ["http://localhost:3000"]},
    }

    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config_data, f)
        path = f.name

    yield path
    os.unlink(path)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("JOB_BOARD_BACKEND_URL", "JOB_BOARD_BACKEND_ANON_KEY", "JOB_BOARD_DATABASE_URL", "SESSION_SECRET"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLoadConfig:
    def test_loads_valid_config(self, config_file, clean_env):
        config = load_config(config_file)
        assert config.backend.url == "https://project.example.co"
        assert config.backend.anon_key == "anon-key"
        assert config.auth.rate_limit_cooldown_minutes == 30
        assert config.web.cors_origins == ["http://localhost:3000"]

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_config("nonexistent.yaml")

    def test_missing_file_allowed_when_not_required(self, clean_env):
        config = load_config("nonexistent.yaml", required=False)
        assert config.backend.mode == "rest"
        assert config.backend.url == ""

    def test_defaults_applied(self, config_file, clean_env):
        config = load_config(config_file)
        assert config.auth.signup_max_retries == 3
        assert config.auth.signup_base_delay_seconds == 2.0
        assert config.listings.filter_debounce_ms == 300
        assert config.log_level == "INFO"

    def test_env_overrides_file(self, config_file, clean_env):
        clean_env.setenv("JOB_BOARD_BACKEND_URL", "https://from-env.example.co")
        clean_env.setenv("SESSION_SECRET", "env-secret")
        config = load_config(config_file)
        assert config.backend.url == "https://from-env.example.co"
        assert config.web.session_secret == "env-secret"


class TestValidateConfig:
    def test_missing_backend_credentials_warns(self):
        warnings = validate_config(AppConfig())
        assert any("anon key" in w.lower() for w in warnings)

    def test_default_session_secret_warns(self):
        warnings = validate_config(AppConfig())
        assert any("session secret" in w.lower() for w in warnings)

    def test_unknown_mode_warns(self):
        config = AppConfig()
        config.backend.mode = "ftp"
        warnings = validate_config(config)
        assert any("unknown backend mode" in w.lower() for w in warnings)

    def test_valid_config_no_warnings(self):
        config = AppConfig()
        config.backend.url = "https://project.example.co"
        config.backend.anon_key = "anon-key"
        config.web.session_secret = "something-long-and-random"
        assert validate_config(config) == []
