"""Application configuration using Pydantic Settings."""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageProvider(str, Enum):
    GCS = "gcs"
    S3 = "s3"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "LeaseKeeper"
    debug: bool = False
    api_v1_prefix: str = "/v1"
    allowed_origins: str = "http://localhost:3000"
    currency: str = "USD"

    # Database
    database_url: str = "postgresql+asyncpg://localhost/leasekeeper"
    database_echo: bool = False

    # Firebase Auth
    firebase_project_id: Optional[str] = None
    google_application_credentials: Optional[str] = None

    # Storage
    storage_provider: StorageProvider = StorageProvider.GCS

    # GCS Config
    gcs_bucket_name: Optional[str] = None
    gcs_project_id: Optional[str] = None

    # S3 Config
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: Optional[str] = "us-east-1"
    s3_bucket_name: Optional[str] = None

    # Signed receipt links
    receipt_url_ttl_seconds: int = 7 * 24 * 3600

    # Email (SMTP)
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    email_from: str = "no-reply@leasekeeper.local"

    # Background work
    scheduler_enabled: bool = True
    outbox_poll_seconds: float = 5.0
    outbox_batch_size: int = 20

    # Feature flags
    feature_flag_ttl_seconds: int = 300

    # Sweeps
    reminder_horizon_days: int = 3
    login_attempt_retention_days: int = 30
    notification_retention_days: int = 90

    @property
    def bucket_name(self) -> str:
        """Get the appropriate bucket name based on storage provider."""
        if self.storage_provider == StorageProvider.GCS:
            if not self.gcs_bucket_name:
                raise ValueError("GCS_BUCKET_NAME required when STORAGE_PROVIDER=gcs")
            return self.gcs_bucket_name
        else:
            if not self.s3_bucket_name:
                raise ValueError("S3_BUCKET_NAME required when STORAGE_PROVIDER=s3")
            return self.s3_bucket_name


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
