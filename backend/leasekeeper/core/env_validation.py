"""
Startup configuration check.

Runs before the app is built. Every problem found is reported together and the
process exits with code 1, so a half-configured deployment never starts taking
rent payments. Set SKIP_ENV_VALIDATION=1 to bypass (tests, alembic, tooling).
"""

import os
import sys
from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProductionSettings(BaseSettings):
    """Variables a production deployment must define."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Required
    database_url: str
    firebase_project_id: str
    storage_provider: str
    allowed_origins: str

    google_application_credentials: Optional[str] = None

    # Receipt storage
    gcs_bucket_name: Optional[str] = None
    gcs_project_id: Optional[str] = None
    s3_bucket_name: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None

    # Reminder email
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    email_from: Optional[str] = None

    # Background work
    scheduler_enabled: bool = True
    outbox_poll_seconds: float = 5.0

    debug: bool = False
    app_name: str = "LeaseKeeper"


def _storage_problems(env: ProductionSettings) -> list[str]:
    if env.storage_provider == "gcs":
        if not (env.gcs_bucket_name and env.gcs_project_id):
            return ["GCS_BUCKET_NAME and GCS_PROJECT_ID are required when STORAGE_PROVIDER=gcs (receipts)"]
    elif env.storage_provider == "s3":
        if not (env.s3_bucket_name and env.aws_access_key_id and env.aws_secret_access_key):
            return [
                "S3_BUCKET_NAME, AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are required "
                "when STORAGE_PROVIDER=s3 (receipts)"
            ]
    else:
        return [f"STORAGE_PROVIDER must be 'gcs' or 's3', got '{env.storage_provider}'"]
    return []


def find_problems(env: ProductionSettings) -> list[str]:
    """Cross-field checks pydantic cannot express on single fields."""
    problems = []

    if not env.database_url.startswith("postgresql"):
        problems.append("DATABASE_URL must be a PostgreSQL URL (postgresql+asyncpg://...)")

    if not env.debug and "*" in [o.strip() for o in env.allowed_origins.split(",")]:
        problems.append("Wildcard CORS origin (*) is only allowed with DEBUG=true")

    problems.extend(_storage_problems(env))

    creds = env.google_application_credentials
    if creds and not os.path.exists(creds):
        problems.append(f"Firebase credentials file not found: {creds}")

    if env.smtp_host and not env.email_from:
        problems.append("EMAIL_FROM is required when SMTP_HOST is set (payment reminders)")

    if env.outbox_poll_seconds <= 0:
        problems.append("OUTBOX_POLL_SECONDS must be positive")

    return problems


def validate_environment() -> Optional[ProductionSettings]:
    """
    Validate deployment configuration or exit(1).

    Returns the parsed settings, or None when validation is skipped.
    """
    if os.environ.get("SKIP_ENV_VALIDATION") == "1":
        return None

    try:
        env = ProductionSettings()
    except ValidationError as e:
        print("❌ FATAL: Environment validation failed", file=sys.stderr)
        for error in e.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            print(f"   • {field.upper()}: {error['msg']}", file=sys.stderr)
        sys.exit(1)

    problems = find_problems(env)
    if problems:
        print("❌ FATAL: Invalid configuration", file=sys.stderr)
        for problem in problems:
            print(f"   • {problem}", file=sys.stderr)
        sys.exit(1)

    if not env.smtp_host:
        print("⚠️  SMTP_HOST not set: reminders are delivered in-app only", file=sys.stderr)
    if not env.scheduler_enabled:
        print("⚠️  SCHEDULER_ENABLED=false: overdue and reminder sweeps will not run", file=sys.stderr)

    print(f"✅ {env.app_name} configuration OK (storage={env.storage_provider})")
    return env


if __name__ == "__main__":
    validate_environment()
