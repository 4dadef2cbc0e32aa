"""
Configuration loader for the ForgeSpace notification service.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class DatabaseConfig:
    url: str = "sqlite:///./forgespace.db"        # postgresql:// | sqlite://
    store_backend: str = "memory"                  # "sql" | "memory"


@dataclass
class EmailConfig:
    provider: str = "resend"
    api_key: str = ""
    api_base_url: str = "https://api.resend.com"
    from_address: str = "ForgeSpace <noreply@ForgeSpace.com>"
    reply_to: str = ""
    timeout_seconds: float = 30.0


@dataclass
class AppConfig:
    url: str = "https://forgespace.com"           # public base for links in emails
    cron_secret: str = ""


@dataclass
class Settings:
    app_name: str = "ForgeSpace"
    debug: bool = False
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    app: AppConfig = field(default_factory=AppConfig)


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def _unresolved(value: str) -> bool:
    return not value or value.startswith("${")


def _resolve(value: str, env_var: str, default: str) -> str:
    if not _unresolved(value):
        return value
    return os.environ.get(env_var) or default


def _apply_env_fallbacks(settings: Settings) -> None:
    """Fill values the YAML leaves empty or unresolved from the environment."""
    settings.email.api_key = _resolve(settings.email.api_key, "RESEND_API_KEY", "")
    settings.email.from_address = _resolve(
        settings.email.from_address, "EMAIL_FROM", EmailConfig.from_address,
    )
    settings.email.reply_to = _resolve(settings.email.reply_to, "EMAIL_REPLY_TO", "")
    settings.app.cron_secret = _resolve(settings.app.cron_secret, "CRON_SECRET", "")
    settings.app.url = _resolve(settings.app.url, "APP_URL", AppConfig.url)
    settings.database.url = _resolve(settings.database.url, "DATABASE_URL", DatabaseConfig.url)


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file. Missing file → defaults plus environment."""
    if config_path is None:
        config_path = os.environ.get(
            "FORGESPACE_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)
        settings.debug = raw.get("debug", settings.debug)

        if "database" in raw:
            db = raw["database"]
            settings.database = DatabaseConfig(
                url=db.get("url", settings.database.url),
                store_backend=db.get("store_backend", settings.database.store_backend),
            )

        if "email" in raw:
            em = raw["email"]
            settings.email = EmailConfig(
                provider=em.get("provider", "resend"),
                api_key=em.get("api_key", ""),
                api_base_url=em.get("api_base_url", settings.email.api_base_url),
                from_address=em.get("from_address", settings.email.from_address),
                reply_to=em.get("reply_to", ""),
                timeout_seconds=float(em.get("timeout_seconds", 30.0)),
            )

        if "app" in raw:
            ap = raw["app"]
            settings.app = AppConfig(
                url=ap.get("url", settings.app.url),
                cron_secret=ap.get("cron_secret", ""),
            )

    _apply_env_fallbacks(settings)
    return settings
