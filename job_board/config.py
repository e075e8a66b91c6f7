"""YAML config loading and validation."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class BackendConfig:
    mode: str = "rest"  # rest, local
    url: str = ""
    anon_key: str = ""
    database_url: str = "sqlite:///data/job_board.db"
    storage_dir: str = "data/storage"
    public_base_url: str = "http://localhost:8000"
    signup_quota: int = 0  # local mode: sign-ups per email before "rate limit" (0 = unlimited)
    timeout_seconds: int = 30


@dataclass
class AuthConfig:
    rate_limit_cooldown_minutes: int = 15
    signup_max_retries: int = 3
    signup_base_delay_seconds: float = 2.0
    email_redirect_to: str = ""


@dataclass
class WebConfig:
    session_secret: str = "dev-secret-change-me-in-production"
    cors_origins: list[str] = field(default_factory=list)


@dataclass
class ListingsConfig:
    filter_debounce_ms: int = 300


@dataclass
class AppConfig:
    backend: BackendConfig = field(default_factory=BackendConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    web: WebConfig = field(default_factory=WebConfig)
    listings: ListingsConfig = field(default_factory=ListingsConfig)
    log_dir: str = "logs"
    log_level: str = "INFO"


def load_config(config_path: str = "config.yaml", required: bool = True) -> AppConfig:
    """Load configuration from a YAML file, with env vars taking precedence for secrets."""
    path = Path(config_path)
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif required:
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Copy config.example.yaml to config.yaml and fill in your settings."
        )
    else:
        raw = {}

    config = AppConfig()

    # Backend (env vars take precedence)
    backend_raw = raw.get("backend", {})
    config.backend = BackendConfig(
        mode=backend_raw.get("mode", "rest"),
        url=os.environ.get("JOB_BOARD_BACKEND_URL", backend_raw.get("url", "")),
        anon_key=os.environ.get("JOB_BOARD_BACKEND_ANON_KEY", backend_raw.get("anon_key", "")),
        database_url=os.environ.get(
            "JOB_BOARD_DATABASE_URL", backend_raw.get("database_url", "sqlite:///data/job_board.db")
        ),
        storage_dir=backend_raw.get("storage_dir", "data/storage"),
        public_base_url=backend_raw.get("public_base_url", "http://localhost:8000"),
        signup_quota=backend_raw.get("signup_quota", 0),
        timeout_seconds=backend_raw.get("timeout_seconds", 30),
    )

    # Auth
    auth_raw = raw.get("auth", {})
    config.auth = AuthConfig(
        rate_limit_cooldown_minutes=auth_raw.get("rate_limit_cooldown_minutes", 15),
        signup_max_retries=auth_raw.get("signup_max_retries", 3),
        signup_base_delay_seconds=auth_raw.get("signup_base_delay_seconds", 2.0),
        email_redirect_to=auth_raw.get("email_redirect_to", ""),
    )

    # Web
    web_raw = raw.get("web", {})
    config.web = WebConfig(
        session_secret=os.environ.get(
            "SESSION_SECRET", web_raw.get("session_secret", "dev-secret-change-me-in-production")
        ),
        cors_origins=web_raw.get("cors_origins", []),
    )

    listings_raw = raw.get("listings", {})
    config.listings = ListingsConfig(
        filter_debounce_ms=listings_raw.get("filter_debounce_ms", 300),
    )

    config.log_dir = raw.get("log_dir", "logs")
    config.log_level = raw.get("log_level", "INFO")

    return config


def validate_config(config: AppConfig) -> list[str]:
    """Return list of validation warnings (empty = OK)."""
    warnings = []

    if config.backend.mode not in ("rest", "local"):
        warnings.append(f"Unknown backend mode '{config.backend.mode}' - expected 'rest' or 'local'")

    if config.backend.mode == "rest":
        if not config.backend.url or not config.backend.anon_key:
            warnings.append(
                "Backend URL or anon key is missing - set JOB_BOARD_BACKEND_URL and "
                "JOB_BOARD_BACKEND_ANON_KEY; registration, login and listings will be unavailable"
            )

    if config.backend.mode == "local" and not config.backend.database_url:
        warnings.append("Local backend selected but no database_url configured")

    if config.web.session_secret == "dev-secret-change-me-in-production":
        warnings.append("Using the default session secret - set SESSION_SECRET in production")

    if config.auth.signup_max_retries < 0:
        warnings.append("signup_max_retries must not be negative")

    return warnings
