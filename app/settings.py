from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ingest.incremental import MAX_TOLERANCE_MINUTES


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    db_path: Path = Field(
        default=Path("data/gov-incidents.db"), validation_alias="DB_PATH"
    )
    feeds_dir: Path = Field(default=Path("feeds"), validation_alias="FEEDS_DIR")

    user_agent: str = Field(
        default="gov-incident-monitor/0.1", validation_alias="USER_AGENT"
    )
    fetch_timeout_seconds: float = Field(
        default=10.0, gt=0, validation_alias="FETCH_TIMEOUT_SECONDS"
    )
    inter_feed_delay_seconds: float = Field(
        default=1.0, ge=0, validation_alias="INTER_FEED_DELAY_SECONDS"
    )
    watermark_tolerance_minutes: int = Field(
        default=0,
        ge=0,
        le=MAX_TOLERANCE_MINUTES,
        validation_alias="WATERMARK_TOLERANCE_MINUTES",
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
