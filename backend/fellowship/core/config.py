# backend/fellowship/core/config.py

from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from pydantic_settings import BaseSettings, SettingsConfigDict


def _strip_asyncpg_unsupported_params(url: str) -> str:
    """
    asyncpg does NOT accept sslmode or channel_binding as connect kwargs.
    If these appear in the URL query, SQLAlchemy can end up passing them to
    asyncpg.connect(), causing:
      TypeError: connect() got an unexpected keyword argument 'sslmode'
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = parse_qsl(parts.query, keep_blank_values=True)
    filtered = [(k, v) for (k, v) in params if k not in {"sslmode", "channel_binding"}]
    new_query = urlencode(filtered, doseq=True)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, new_query, parts.fragment))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -----------------------------
    # Environment
    # -----------------------------
    # Use: development | staging | production
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # -----------------------------
    # DB
    # -----------------------------
    # postgresql+asyncpg://... in deployments; a local SQLite file for development.
    DATABASE_URL_ASYNC: str = "sqlite+aiosqlite:///./fellowship.db"

    # -----------------------------
    # JWT session tokens
    # -----------------------------
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # -----------------------------
    # Password reset
    # -----------------------------
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    # None => echo the reset token only outside production
    RETURN_RESET_TOKEN_IN_RESPONSE: Optional[bool] = None

    # -----------------------------
    # Domain caps
    # -----------------------------
    RSVP_MAX_GUESTS: int = 50
    TIMER_MAX_DURATION_SECONDS: int = 24 * 60 * 60

    # -----------------------------
    # Gallery, avatars / blob storage
    # -----------------------------
    UPLOAD_DIR: str = "./data/blobs"
    GALLERY_MAX_UPLOAD_BYTES: int = 8 * 1024 * 1024
    GALLERY_ALLOWED_CONTENT_TYPES: list[str] = [
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/heic",
        "image/webp",
    ]
    AVATAR_MAX_UPLOAD_BYTES: int = 8 * 1024 * 1024
    AVATAR_ALLOWED_CONTENT_TYPES: list[str] = ["image/jpeg", "image/png", "image/webp"]

    @property
    def DATABASE_URL_ASYNC_CLEAN(self) -> str:
        return _strip_asyncpg_unsupported_params(self.DATABASE_URL_ASYNC)

    @property
    def is_production(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() == "production"

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        env = (self.ENVIRONMENT or "").strip().lower()

        # Never run staging/production with a placeholder secret.
        if env in {"staging", "production"}:
            if not self.JWT_SECRET or self.JWT_SECRET.strip() == "dev-secret-change-me":
                raise ValueError("JWT_SECRET must be set to a strong value in staging/production.")
            if len(self.JWT_SECRET.strip()) < 32:
                raise ValueError("JWT_SECRET is too short; use at least 32 characters in staging/production.")

        if self.JWT_ALGORITHM not in {"HS256"}:
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")

        if self.RSVP_MAX_GUESTS < 0:
            raise ValueError("RSVP_MAX_GUESTS must be >= 0")


settings = Settings()
