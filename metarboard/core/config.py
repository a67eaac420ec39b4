"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # aviationweather.gov data API
    awc_api_base: str = "https://aviationweather.gov/api/data"
    awc_user_agent: str = "METAR-Command-Center/1.0"
    awc_request_timeout: float = 15.0
    metar_default_hours: int = 2

    # Batch collector
    partition_hours: int = 1
    collector_batch_size: int = 10

    # Ledger persistence
    database_url: str = "sqlite+aiosqlite:///./metarboard.db"
    blob_store_backend: str = "sql"  # "sql" or "memory"
    ledger_key: str = "metar-maintenance-data"
    ledger_max_events: int = 1000
    # Open an outage when a station is first seen already flagged
    ledger_open_on_first_sight: bool = False

    # Refresh loop (collector -> ledger)
    refresh_cron_enabled: bool = False
    refresh_interval_seconds: int = 3600

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
