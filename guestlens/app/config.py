"""Application configuration using Pydantic Settings."""
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings (read from environment variables or .env)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = Field("guestlens")
    ENVIRONMENT: str = Field("development")
    DEBUG: bool = Field(False)
    API_V1_PREFIX: str = Field("/api/v1")
    LOG_LEVEL: str = Field("INFO")

    # Database
    DATABASE_URL: str = Field("sqlite:///./guestlens.db")
    DB_POOL_SIZE: int = Field(5)
    DB_MAX_OVERFLOW: int = Field(10)

    # Redis
    REDIS_URL: str = Field("redis://localhost:6379/0")

    # S3 compatible object storage
    AWS_ACCESS_KEY_ID: str = Field("")
    AWS_SECRET_ACCESS_KEY: str = Field("")
    S3_BUCKET_NAME: str = Field("guestlens-photos")
    S3_REGION: str = Field("eu-central-1")
    S3_ENDPOINT_URL: Optional[str] = Field(None)

    # Legacy photos stored on local disk (file_path without the s3: prefix)
    LOCAL_UPLOAD_DIR: str = Field("./uploads")

    # JWT (tokens are issued elsewhere, only decoded here)
    JWT_SECRET_KEY: str = Field("change-me")
    JWT_ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60)

    # Upload grants
    SIGNED_URL_TTL_SECS: int = Field(3600)
    HOST_SIGNING_CONCURRENCY: int = Field(10)
    GUEST_SIGNING_CONCURRENCY: int = Field(2)
    GUEST_PRESIGN_RATE_LIMIT: int = Field(60)
    GUEST_PRESIGN_RATE_WINDOW_SECS: int = Field(600)
    FINALIZE_VERIFY_OBJECTS: bool = Field(False)

    # Thumbnails
    THUMBNAIL_SIZE_TAG: str = Field("sm")
    THUMBNAIL_MAX_DIMENSION: int = Field(512)
    THUMBNAIL_JPEG_QUALITY: int = Field(80)
    THUMBNAIL_TIMEOUT_SECS: float = Field(15.0)
    THUMBNAIL_CACHE_CONTROL: str = Field(
        "public, s-maxage=86400, max-age=3600, stale-while-revalidate=86400"
    )

    # Bulk archive downloads
    ARCHIVE_WORKERS: int = Field(4)
    ARCHIVE_MEMBER_TIMEOUT_SECS: float = Field(60.0)
    ARCHIVE_SIGNED_URL_TTL_SECS: int = Field(300)
    ARCHIVE_MAX_PHOTOS: int = Field(500)
    # declared bytes fetched ahead of the zip writer
    ARCHIVE_PREFETCH_BYTES: int = Field(64 * 1024 * 1024)
    BULK_DOWNLOAD_RATE_LIMIT: int = Field(5)
    BULK_DOWNLOAD_RATE_WINDOW_SECS: int = Field(3600)

    # Event creation
    EVENT_CREATE_GUARD_TTL_SECS: int = Field(30)
    EVENT_CREATE_WAIT_SECS: float = Field(3.0)

    # List caches
    EVENT_PHOTOS_TTL_SECS: int = Field(120)
    USER_EVENTS_TTL_SECS: int = Field(300)


settings = Settings()
