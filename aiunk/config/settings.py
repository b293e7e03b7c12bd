"""Application settings using Pydantic BaseSettings."""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_db_path() -> str:
    """Get absolute path to default SQLite database."""
    # aiunk/config/ -> project root
    config_dir = os.path.dirname(os.path.abspath(__file__))
    root_dir = os.path.dirname(os.path.dirname(config_dir))
    db_path = os.path.join(root_dir, "data", "aiunk.db")
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    environment: str = Field(default="development")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    # HTTP
    cors_origins: str = Field(default="http://localhost:3000")
    max_request_bytes: int = Field(default=1048576)

    # Identity bridge / sessions
    session_cookie_name: str = Field(default="aiunk_session")
    session_ttl_seconds: int = Field(default=604800)
    cookie_secure: bool = Field(default=True)
    cookie_samesite: str = Field(default="lax")
    identity_bridge_token: str = Field(default="")
    # External login id that is promoted to admin on login
    owner_open_id: str = Field(default="")

    # Database
    database_url: str = Field(default_factory=_get_default_db_path)

    # Providers
    provider_timeout_seconds: int = Field(default=60)
    provider_max_retries: int = Field(default=1)
    default_provider: str = Field(default="openai")
    default_model: str = Field(default="gpt-4o-mini")
    default_api_key: str = Field(default="")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_compat_base_url: str = Field(default="")
    lmstudio_base_url: str = Field(default="http://127.0.0.1:1234/v1")
    ollama_base_url: str = Field(default="http://127.0.0.1:11434")
    anthropic_base_url: str = Field(default="https://api.anthropic.com")
    google_base_url: str = Field(default="https://generativelanguage.googleapis.com")

    # Chat
    context_window_messages: int = Field(default=10, ge=1)
    persona_prompt_path: str = Field(default="")

    # Admin
    audit_log_default_limit: int = Field(default=100)

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @field_validator("cookie_samesite")
    @classmethod
    def validate_cookie_samesite(cls, v: str) -> str:
        """Normalize + validate SameSite cookie attribute."""
        vv = (v or "").strip().lower()
        if vv not in {"lax", "strict", "none"}:
            raise ValueError("COOKIE_SAMESITE must be one of: lax, strict, none")
        return vv

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"development", "staging", "production", "test"}:
            raise ValueError(
                "ENVIRONMENT must be one of: development, staging, production, test"
            )
        return vv

    @model_validator(mode="after")
    def validate_cross_field_constraints(self) -> "Settings":
        # SameSite=None requires Secure=true.
        if self.cookie_samesite == "none" and not self.cookie_secure:
            raise ValueError("COOKIE_SECURE must be true when COOKIE_SAMESITE=none")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
