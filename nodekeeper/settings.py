from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Cluster
    es_url: str = os.getenv("NK_URL", "http://localhost:9200")
    http_timeout_s: int = _env_int("NK_TIMEOUT", 10)

    # Local nodes
    config_path: str = os.getenv("NK_CONFIG", "/etc/es-node-keeper.yaml")
    # fatal|empty: what to do when the node file cannot be read or parsed.
    on_config_error: str = os.getenv("NK_ON_CONFIG_ERROR", "fatal")

    # Reconciliation
    interval_s: int = _env_int("NK_INTERVAL", 30)
    restart_exclusion_period_s: int = _env_int("NK_RESTART_EXCLUSION_PERIOD", 600)
    dry_run: bool = _env_bool("NK_DRY_RUN", False)
    verbose: bool = _env_bool("NK_VERBOSE", False)

    # Audit trail and status API
    db_path: str = os.getenv("NK_DB_PATH", "nodekeeper.db")
    api_host: str = os.getenv("NK_API_HOST", "127.0.0.1")
    api_port: int = _env_int("NK_API_PORT", 0)

    # Email alerting (optional)
    enable_email: bool = _env_bool("NK_ENABLE_EMAIL", False)
    smtp_host: str = os.getenv("NK_SMTP_HOST", "localhost")
    smtp_port: int = _env_int("NK_SMTP_PORT", 587)
    smtp_user: str | None = os.getenv("NK_SMTP_USER")
    smtp_password: str | None = os.getenv("NK_SMTP_PASSWORD")
    email_from: str | None = os.getenv("NK_EMAIL_FROM")
    email_to: str | None = os.getenv("NK_EMAIL_TO")


settings = Settings()
