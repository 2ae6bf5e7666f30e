from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DbSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="forbid")

    # Hosted Postgres providers expose the direct (non-pooled) URL under their own names.
    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("database_url", "postgres_url_non_pooling", "postgres_url"),
    )
    database_ssl: str = "require"

    max_connections: int = 1
    connect_timeout_s: float = 10.0
    diagnostic_connect_timeout_s: float = 30.0
    idle_timeout_s: int = 20
    max_lifetime_s: int = 60 * 30
    application_name: str = "dashboard-seed"

    seed_max_attempts: int = 3
    seed_retry_delay_s: float = 2.0
    password_hash_rounds: int = 10


SETTINGS = DbSettings()
