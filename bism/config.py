"""
BISM EERR - Configuration Module
Loads and validates environment variables using Pydantic Settings.
"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BISM_",
        case_sensitive=False,
    )

    # Application Settings
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Upload limits
    max_upload_size_mb: int = 50

    # Sheet detection
    eerr_header_scan_rows: int = 15          # Rows scanned for the ENERO/FEBRERO header
    clasificacion_header_scan_rows: int = 10  # Rows scanned for the RUT header
    ledger_sheet_name: str = "LC"

    # Branches generated automatically from the purchase ledger on upload
    branches: list[str] = ["Sevilla", "Labranza"]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
