"""YAML config loading and validation."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class EmailConfig:
    provider: str = "resend"  # resend, smtp
    from_email: str = "onboarding@resend.dev"
    from_name: str = "Hireloop"
    resend_api_key: str = ""
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    max_attempts: int = 3


@dataclass
class DispatchConfig:
    enabled: bool = True
    hour: int = 8
    minute: int = 0
    timezone: str = "UTC"
    workers: int = 1
    daily_window_hours: int = 24
    weekly_window_days: int = 7
    heartbeat_window_days: int = 30


@dataclass
class WebConfig:
    base_url: str = "http://localhost:8000"
    cron_secret: str = ""
    session_secret: str = "dev-secret-change-me-in-production"


@dataclass
class AppConfig:
    email: EmailConfig = field(default_factory=EmailConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_dir: str = "logs"


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load and validate configuration from YAML file."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Copy config.example.yaml to config.yaml and fill in your settings."
        )

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    config = AppConfig()

    # Email (env vars take precedence for secrets)
    email_raw = raw.get("email", {})
    config.email = EmailConfig(
        provider=email_raw.get("provider", "resend"),
        from_email=email_raw.get("from_email", "onboarding@resend.dev"),
        from_name=email_raw.get("from_name", "Hireloop"),
        resend_api_key=os.environ.get("RESEND_API_KEY", email_raw.get("resend_api_key", "")),
        smtp_server=email_raw.get("smtp_server", "smtp.gmail.com"),
        smtp_port=email_raw.get("smtp_port", 587),
        smtp_username=email_raw.get("smtp_username", ""),
        smtp_password=os.environ.get("HIRELOOP_SMTP_PASSWORD", email_raw.get("smtp_password", "")),
        max_attempts=email_raw.get("max_attempts", 3),
    )

    # Dispatch
    dispatch_raw = raw.get("dispatch", {})
    config.dispatch = DispatchConfig(
        enabled=dispatch_raw.get("enabled", True),
        hour=dispatch_raw.get("hour", 8),
        minute=dispatch_raw.get("minute", 0),
        timezone=dispatch_raw.get("timezone", "UTC"),
        workers=dispatch_raw.get("workers", 1),
        daily_window_hours=dispatch_raw.get("daily_window_hours", 24),
        weekly_window_days=dispatch_raw.get("weekly_window_days", 7),
        heartbeat_window_days=dispatch_raw.get("heartbeat_window_days", 30),
    )

    # Web
    web_raw = raw.get("web", {})
    config.web = WebConfig(
        base_url=web_raw.get("base_url", "http://localhost:8000").rstrip("/"),
        cron_secret=os.environ.get("CRON_SECRET", web_raw.get("cron_secret", "")),
        session_secret=os.environ.get(
            "SESSION_SECRET", web_raw.get("session_secret", "dev-secret-change-me-in-production")
        ),
    )

    config.log_dir = raw.get("log_dir", "logs")

    return config


def validate_config(config: AppConfig) -> list[str]:
    """Return list of validation warnings (empty = OK)."""
    warnings = []

    if config.email.provider not in ("resend", "smtp"):
        warnings.append(f"Unknown email provider '{config.email.provider}' - emails will fail")

    if config.email.provider == "resend" and not config.email.resend_api_key:
        warnings.append("No Resend API key configured - notifications will fail")
    elif config.email.provider == "resend" and not config.email.resend_api_key.startswith("re_"):
        warnings.append("Resend API key looks invalid (should start with 're_')")

    if config.email.provider == "smtp" and (not config.email.smtp_username or not config.email.smtp_password):
        warnings.append("SMTP credentials not configured - notifications will fail")

    if not config.web.cron_secret:
        warnings.append("No cron secret configured - the /cron/job-alerts endpoint will reject all calls")

    if config.web.session_secret == "dev-secret-change-me-in-production":
        warnings.append("Using the default session secret - set SESSION_SECRET in production")

    if config.dispatch.workers < 1:
        warnings.append("dispatch.workers must be at least 1 - falling back to sequential processing")

    return warnings
