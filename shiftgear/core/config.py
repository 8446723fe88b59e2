"""Application settings loaded from environment variables."""

from __future__ import annotations

from datetime import time, tzinfo

from dateutil import tz
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Equipment Scheduling Service"
    service_name: str = "shiftgear"
    log_level: str = "INFO"
    # Wall-clock zone used to turn day-relative shift times into absolute windows
    timezone: str = "UTC"
    morning_start: time = time(8, 0)
    morning_end: time = time(12, 0)
    afternoon_start: time = time(14, 30)
    afternoon_end: time = time(18, 30)
    custom_shift_start: time = time(9, 0)
    custom_shift_end: time = time(13, 0)
    # Simulated storage round-trip for the in-memory ledger
    ledger_latency_seconds: float = 0.0

    model_config = SettingsConfigDict(
        env_prefix="SHIFTGEAR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def zone(self) -> tzinfo:
        """Return the configured zone, failing loudly on unknown names."""
        zone = tz.gettz(self.timezone)
        if zone is None:
            raise RuntimeError(f"Unknown timezone setting: {self.timezone!r}")
        return zone


settings = Settings()

__all__ = ["settings", "Settings"]
