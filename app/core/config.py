from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="OCTOPUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: str = Field(default="change-me", description="Signing secret for admin session tokens.")
    supabase_service_role_key: Optional[str] = Field(
        default=None,
        description="Service-role key used by the Supabase storage backend.",
    )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Secrets":
        return cls()


class Settings(BaseSettings):
    """Centralised runtime configuration for the Octopus asset service."""

    model_config = SettingsConfigDict(
        env_prefix="OCTOPUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Octopus Assets API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./octopus.db",
        description="SQLAlchemy compatible DSN.",
    )

    storage_backend: Literal["local", "supabase"] = Field(default="local", description="Active storage implementation.")
    storage_bucket: str = Field(default="media", description="Bucket holding every managed asset.")
    local_storage_base_path: Path = Field(
        default_factory=lambda: Path("storage"),
        description="Root directory that emulates the bucket for local storage.",
    )
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Origin used to build public object URLs for the local backend.",
    )
    supabase_url: Optional[str] = None

    scan_folders: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("services", "portfolio", "testimonials", "blog", "misc", "misc/posters"),
        description="Folders enumerated by storage audits; anything else is invisible to reconciliation.",
    )
    catchall_folder: str = Field(default="misc", description="Folder for uploads without a content section.")
    posters_subfolder: str = Field(default="posters", description="Sub-folder that receives generated posters.")
    upload_folders: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("services", "portfolio", "testimonials", "blog", "misc"),
        description="Folders accepted by the managed upload path.",
    )
    list_page_size: int = Field(default=1000, ge=1000, description="Objects requested per folder listing.")
    storage_timeout_s: float = Field(default=30.0, gt=0, description="Timeout applied to every storage call.")

    poster_timemark_s: float = Field(default=1.0, ge=0, description="Offset of the frame used as video poster.")
    poster_width: int = Field(default=640, ge=16, description="Poster width in pixels; height keeps aspect.")
    max_upload_size_bytes: int = Field(default=50 * 1024 * 1024, description="Hard limit for managed uploads.")

    jwt_algorithm: str = Field(default="HS256", description="Algorithm used for JWT tokens.")
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @field_validator("scan_folders", "upload_folders", mode="before")
    @classmethod
    def _split_folders(cls, value: object) -> object:
        if isinstance(value, str):
            return tuple(item.strip().strip("/") for item in value.split(",") if item.strip())
        return value

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def posters_folder(self) -> str:
        return f"{self.catchall_folder}/{self.posters_subfolder}"


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "OCTOPUS_ENV": "OCTOPUS_ENVIRONMENT",
        "OCTOPUS_DB_URL": "OCTOPUS_DATABASE_URL",
        "OCTOPUS_BUCKET": "OCTOPUS_STORAGE_BUCKET",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    settings = Settings()

    secrets = Secrets.from_settings(settings)

    if settings.environment == "production" and secrets.jwt_secret == "change-me":
        raise ValueError("Production environment must have a non-default JWT secret.")
    if settings.storage_backend == "supabase" and not settings.supabase_url:
        raise ValueError("Supabase storage backend requires OCTOPUS_SUPABASE_URL.")

    settings.secrets = secrets
    return settings


__all__ = ["Secrets", "Settings", "get_settings"]
