from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class SeedServiceSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="forbid")

    log_level: str = "info"
    service_name: str = "seed"


SETTINGS = SeedServiceSettings()
