"""
AppConnect Configuration Module

Provides centralized configuration management with:
- Environment variable loading (AC_ prefix)
- Type validation via Pydantic
- Development overrides via .env file

Environment Variable Naming Convention:
- All variables use AC_ prefix (e.g., AC_STORE_DIR, AC_KEY_ALGORITHM)
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConnectorSettings(BaseSettings):
    """
    AppConnect settings.

    Usage:
        from appconnect.config import settings

        store = FileSystemStore(settings.STORE_DIR)
    """
    model_config = SettingsConfigDict(
        env_prefix='AC_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # ==========================================================================
    # GENERAL
    # ==========================================================================
    ENVIRONMENT: str = Field(default="development", description="Runtime environment: development, staging, production")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    # ==========================================================================
    # IDENTITY
    # ==========================================================================
    STORE_DIR: str = Field(default=".", description="Directory holding config.json, info.json and generated.* artifacts")
    KEY_ALGORITHM: Optional[str] = Field(
        default=None,
        description="Key algorithm for new CSRs (rsa2048, rsa4096, ec256, ...). Overrides the server hint when set.",
    )

    # ==========================================================================
    # NETWORKING
    # ==========================================================================
    HTTP_TIMEOUT: Optional[float] = Field(default=None, gt=0, description="Request timeout in seconds (None = no timeout)")
    CA_BUNDLE: Optional[str] = Field(default=None, description="Extra PEM trust anchors for the management endpoints")
    USER_AGENT: str = Field(default="AppConnect-Client/1.0.0", description="User-Agent header value")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError("LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL")
        return v

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"


def get_settings(**overrides) -> ConnectorSettings:
    """Load settings from the environment, with explicit keyword overrides."""
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return ConnectorSettings(**overrides)


# Global settings instance
settings = ConnectorSettings()
