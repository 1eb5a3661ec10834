from __future__ import annotations

import tempfile

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = "sqlite:///./fridgesnap.db"

    free_weekly_limit: int = 4
    analyze_cooldown_s: int = 30
    premium_analyze_cooldown_s: int = 10
    regen_cooldown_s: int = 20
    free_regen_limit: int = 1
    scan_retention_days: int = 14
    week_start_weekday: int = Field(
        0, ge=0, le=6, description="Weekday the tracked week starts on (0=Monday)"
    )
    week_timezone: str = Field(
        "UTC", description="Zone whose local midnight bounds the tracked week"
    )
    max_image_bytes: int = 8 * 1024 * 1024

    debug_secret: str = Field(
        "",
        description="Shared secret for the premium override; empty disables it",
    )

    openai_model: str = "gpt-4o-mini"
    free_temperature: float | None = 1.0
    premium_temperature: float | None = 0.7

    tmp_dir: str = Field(default_factory=tempfile.gettempdir)
    log_level: str = "INFO"

    model_config = ConfigDict(
        extra="ignore",
        env_file=".env",
        case_sensitive=False,
    )
