"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "postgresql://localhost:5432/channel_ingest"

    # Uploads
    max_upload_size_mb: int = 10
    business_units: list[str] = ["jivo-wellness", "jivo-mart", "chirag"]
    currency: str = "INR"

    # Parsing
    flipkart_lookback_months: int = 2
    header_scan_rows: int = 10

    # Schema
    create_tables_on_startup: bool = False

    # Application
    debug: bool = False
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000


settings = Settings()
