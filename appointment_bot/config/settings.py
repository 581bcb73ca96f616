"""Configuration management for the appointment assistant."""
import re
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Email - Optional in dev, required for booking confirmations
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_email: str = ""
    smtp_password: SecretStr = Field(default="")

    # Medical Q&A provider (OpenAI-compatible endpoint)
    groq_api_key: SecretStr = Field(default="", description="Groq API key")
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_model: str = "llama3-70b-8192"
    medical_qa_timeout_sec: float = Field(default=15.0, gt=0, le=120)
    medical_qa_max_tokens: int = Field(default=150, ge=16, le=2048)

    # Sessions
    session_cookie_name: str = "session_id"
    session_ttl_seconds: int = Field(default=1800, ge=60)

    # Redis Configuration
    redis_host: str = "localhost"
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_db: int = Field(default=0, ge=0, le=15)
    redis_password: SecretStr = Field(default="")
    redis_ssl: bool = False
    redis_url: str = ""  # Optional: full Redis URL (overrides individual settings)
    use_redis: bool = False  # Enable Redis-backed session store

    # Application
    app_env: str = Field(default="development", pattern=r"^(development|staging|production|testing|test)$")
    log_level: str = Field(default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    @field_validator("smtp_email")
    @classmethod
    def validate_smtp_email(cls, v: str) -> str:
        """Validate SMTP sender address format when provided."""
        if not v:
            return v
        if not re.match(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$", v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("session_cookie_name")
    @classmethod
    def validate_cookie_name(cls, v: str) -> str:
        """Cookie names must be a single token."""
        if not re.match(r"^[A-Za-z0-9_\-]+$", v):
            raise ValueError("Cookie name may only contain letters, digits, '_' and '-'")
        return v

    @field_validator("groq_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Normalize app_env to lowercase."""
        return v.lower() if isinstance(v, str) else v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log_level to uppercase."""
        return v.upper() if isinstance(v, str) else v

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_email and self.get_smtp_password())

    # -------------------------------------------------------------------------
    # Secret Accessors (for services that need the raw value)
    # -------------------------------------------------------------------------

    def get_groq_api_key(self) -> str:
        """Get Groq API key as string."""
        return self.groq_api_key.get_secret_value() if self.groq_api_key else ""

    def get_smtp_password(self) -> str:
        """Get SMTP password as string."""
        return self.smtp_password.get_secret_value() if self.smtp_password else ""

    def get_redis_password(self) -> str:
        """Get Redis password as string."""
        return self.redis_password.get_secret_value() if self.redis_password else ""


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
