# app/config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env lives in the project root, next to pyproject.toml
ENV_FILE = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(ENV_FILE, override=False)  # pre-load into the process environment


class Settings(BaseSettings):
    # ---- App / Infra ----
    APP_VERSION: str = "0.1.0"
    DATABASE_URL: Optional[str] = Field(default_factory=lambda: os.getenv("DATABASE_URL"))
    DB_ENSURE_SCHEMA: bool = False
    LOG_LEVEL: str = "INFO"

    # ---- Identity provider (bearer JWT) ----
    # Not required at class level so the server can boot without them;
    # require_auth_key() validates at request time.
    AUTH_JWT_SECRET: Optional[str] = Field(default_factory=lambda: os.getenv("AUTH_JWT_SECRET"))
    AUTH_JWKS_URL: Optional[str] = None
    AUTH_JWT_ALGORITHMS: List[str] = Field(default_factory=lambda: ["HS256"])
    AUTH_JWT_AUDIENCE: Optional[str] = None
    AUTH_JWT_ISSUER: Optional[str] = None

    # ---- CORS ----
    CORS_ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()


def require_database_url() -> str:
    """
    Runtime check with a clear message when the DSN is missing.
    """
    dsn = (settings.DATABASE_URL or os.getenv("DATABASE_URL") or "").strip()
    if not dsn:
        raise RuntimeError(
            "DATABASE_URL not set. Check .env "
            f"(tried loading from: {ENV_FILE})."
        )
    return dsn


def require_auth_key() -> str:
    """
    Return the HS* shared secret, or raise when neither a secret nor a JWKS URL is configured.

    Returns an empty string when only AUTH_JWKS_URL is set; the caller then resolves
    the signing key per token.
    """
    if settings.AUTH_JWT_SECRET:
        return settings.AUTH_JWT_SECRET
    if settings.AUTH_JWKS_URL:
        return ""
    raise RuntimeError(
        "AUTH_JWT_SECRET or AUTH_JWKS_URL must be set. Put one of them in .env "
        f"(tried loading from: {ENV_FILE})."
    )
