"""
Application configuration from environment variables.
Settings class using pydantic-settings with optional validation.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from backend root so it loads when running from backend/ or project root
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    """
    Application settings loaded from environment and .env.
    All fields optional with defaults for local dev; validate for production.
    """

    # Application
    ENVIRONMENT: str = "development"
    # Store as string so env never triggers json.loads; parsed in cors_origins_list.
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated origins or JSON array",
        validation_alias="CORS_ORIGINS",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def normalize_cors_origins(cls, v: object) -> str:
        """Ensure we always have a string (avoid empty env causing json.loads in pydantic-settings)."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return "http://localhost:3000"
        if isinstance(v, list):
            return ",".join(str(x).strip() for x in v if str(x).strip())
        return str(v).strip()

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Attio (CRM)
    attio_api_url: str = Field(
        default="https://api.attio.com/v2",
        description="Attio REST API base URL",
        validation_alias="ATTIO_API_URL",
    )
    attio_access_token: str = Field(
        default="",
        description="Attio access token (Bearer auth); seeds the connection store when set",
        validation_alias="ATTIO_ACCESS_TOKEN",
    )

    # Airtable (tabular database)
    airtable_api_url: str = Field(
        default="https://api.airtable.com/v0",
        description="Airtable REST API base URL (records and meta API live under it)",
        validation_alias="AIRTABLE_API_URL",
    )
    airtable_access_token: str = Field(
        default="",
        description="Airtable personal access token (Bearer auth)",
        validation_alias="AIRTABLE_ACCESS_TOKEN",
    )
    airtable_base_id: str = Field(
        default="",
        description="Airtable base identifier (app...)",
        validation_alias="AIRTABLE_BASE_ID",
    )

    # Supabase (optional; persistent connection store and sync audit trail)
    supabase_url: str = Field(default="", validation_alias="SUPABASE_URL")
    supabase_service_key: str = Field(default="", validation_alias="SUPABASE_SERVICE_KEY")

    # HTTP client
    http_timeout_seconds: float = Field(default=30.0, validation_alias="HTTP_TIMEOUT_SECONDS")
    http_max_retries: int = Field(
        default=0,
        ge=0,
        description="Retries on transport failures only; HTTP error statuses are never retried",
        validation_alias="HTTP_MAX_RETRIES",
    )

    # Sync engine defaults
    sync_rate_limit_delay_ms: int = Field(default=100, ge=0, validation_alias="SYNC_RATE_LIMIT_DELAY_MS")
    sync_default_record_limit: int | None = Field(default=10, validation_alias="SYNC_DEFAULT_RECORD_LIMIT")
    sync_page_size: int = Field(default=100, ge=1, le=100, validation_alias="SYNC_PAGE_SIZE")
    backup_dir: str = Field(default="backups", validation_alias="BACKUP_DIR")

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS_ORIGINS from comma-separated or JSON array string."""
        raw = (self.cors_origins or "").strip()
        if not raw:
            return ["http://localhost:3000"]
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [x.strip() for x in parsed if isinstance(x, str) and x.strip()]
            except ValueError:
                pass
        return [x.strip() for x in raw.split(",") if x.strip()] or ["http://localhost:3000"]

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    @field_validator("attio_api_url", "airtable_api_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    def validate_for_production(self) -> None:
        """
        Call to validate that required env vars are set (e.g. on startup in production).
        Raises ValueError with missing keys.
        """
        missing: List[str] = []
        if not self.supabase_url:
            missing.append("SUPABASE_URL")
        if not self.supabase_service_key:
            missing.append("SUPABASE_SERVICE_KEY")
        if self.airtable_access_token and not self.airtable_base_id:
            missing.append("AIRTABLE_BASE_ID")
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
