from __future__ import annotations

import pytest
from testcontainers.postgres import PostgresContainer

from db.settings import DbSettings


@pytest.fixture(scope="session")
def postgres_url() -> str:
    # Stock postgres image ships the contrib extensions, uuid-ossp included.
    with PostgresContainer("postgres:16") as pg:
        yield pg.get_connection_url()


@pytest.fixture(scope="session")
def db_settings(postgres_url: str) -> DbSettings:
    # Testcontainers URL may be postgresql:// or postgresql+psycopg2://; the factory rewrites
    # either to asyncpg. The container does not serve TLS.
    return DbSettings(
        database_url=postgres_url,
        database_ssl="disable",
        connect_timeout_s=30,
        seed_retry_delay_s=0,
    )
