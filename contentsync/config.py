"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_IGNORED_DIRS: tuple[str, ...] = (".next", "node_modules", ".git")
DEFAULT_ALLOWED_EXTENSIONS: tuple[str, ...] = (
    "json",
    "js",
    "xml",
    "html",
    "txt",
    "pdf",
    "png",
    "jpg",
    "jpeg",
    "gif",
    "svg",
    "webp",
    "docx",
)


class Settings(BaseSettings):
    """ContentSync application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    expose_docs: bool = False

    # Raw SQL backend
    database_url: str = ""

    # REST backend (PostgREST / Supabase)
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    rest_timeout_seconds: float = Field(default=30.0, gt=0)

    # Scanning
    content_dir: Path = Path("./public")
    ignored_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORED_DIRS))
    allowed_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_EXTENSIONS)
    )

    # Apply
    apply_concurrency: int = Field(default=5, ge=1, le=64)
    create_schema_on_startup: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=list)

    @field_validator("allowed_extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        normalized = [ext.strip().lower().lstrip(".") for ext in value]
        return [ext for ext in normalized if ext]

    @property
    def rest_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)

    def validate_backend_config(self) -> None:
        """Require at least one usable storage backend."""
        if self.database_url or self.rest_configured:
            return
        raise ValueError(
            "No database configured: set DATABASE_URL or "
            "SUPABASE_URL + SUPABASE_SERVICE_ROLE_KEY"
        )
