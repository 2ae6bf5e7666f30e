from __future__ import annotations

import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import sqlalchemy as sa
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext import asyncio as sa_asyncio
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from db.errors import ConfigurationError, ConnectivityFailure, classify
from db.settings import DbSettings

# libpq understands these, asyncpg's connect() rejects them as unknown kwargs.
_LIBPQ_ONLY_PARAMS = ("sslmode", "pgbouncer", "connect_timeout", "channel_binding")
_PASSWORD_RE = re.compile(r"(://[^:/@]*:).*@")


def async_database_url(raw: str) -> tuple[URL, str | None]:
    """
    Normalize a provider connection string to the asyncpg dialect.

    Returns the URL with libpq-only query parameters removed, plus the `sslmode` it carried
    (if any) so the caller can hand it to asyncpg as the `ssl` argument instead.
    """
    url = make_url(raw)
    sslmode = url.query.get("sslmode")
    if isinstance(sslmode, tuple):
        sslmode = sslmode[-1] if sslmode else None
    url = url.set(drivername="postgresql+asyncpg").difference_update_query(_LIBPQ_ONLY_PARAMS)
    return url, sslmode


def redact_url(raw: str | None) -> str | None:
    """Mask the password of a connection string; everything else is kept as given."""
    if raw is None:
        return None
    try:
        url = make_url(raw)
    except (sa_exc.ArgumentError, ValueError):
        # Unparseable; masks from the user separator through the last "@".
        return _PASSWORD_RE.sub(r"\1****@", raw, count=1)
    if url.password is None:
        return raw
    return url.render_as_string(hide_password=True).replace(":***@", ":****@", 1)


def connect_args(settings: DbSettings, *, ssl: str, connect_timeout: float) -> dict[str, Any]:
    return {
        "ssl": ssl,
        "timeout": connect_timeout,
        "server_settings": {"application_name": settings.application_name},
    }


def idle_timeout_statement(settings: DbSettings, server_version: tuple[int, ...] | None) -> sa.TextClause | None:
    """
    `SET idle_session_timeout` for servers that know the setting (PostgreSQL 14+).

    Issued after connecting rather than in the startup packet: older servers and PgBouncer
    refuse unknown startup parameters outright.
    """
    if settings.idle_timeout_s <= 0 or not server_version or server_version < (14,):
        return None
    return sa.text(f"SET idle_session_timeout = {int(settings.idle_timeout_s * 1000)}")


def create_engine(settings: DbSettings, *, connect_timeout: float | None = None) -> AsyncEngine:
    if not settings.database_url:
        raise ConfigurationError(
            "database url is not configured (set DATABASE_URL or POSTGRES_URL_NON_POOLING)",
            stage="configure",
        )
    url, sslmode = async_database_url(settings.database_url)
    timeout = connect_timeout if connect_timeout is not None else settings.connect_timeout_s
    # Looked up on the module so a globally installed SQLAlchemy instrumentation sees every engine.
    return sa_asyncio.create_async_engine(
        url,
        pool_size=settings.max_connections,
        max_overflow=0,
        pool_recycle=settings.max_lifetime_s,
        pool_pre_ping=True,
        connect_args=connect_args(settings, ssl=sslmode or settings.database_ssl, connect_timeout=timeout),
    )


@asynccontextmanager
async def connect(settings: DbSettings, *, connect_timeout: float | None = None) -> AsyncIterator[AsyncConnection]:
    """
    Scoped connection for one pipeline step.

    The body runs inside a transaction (commit on success, rollback on error). The connection
    is closed and its engine disposed on every exit path, so nothing outlives the step. The
    server-side idle timeout is applied first when the server supports it.
    """
    engine = create_engine(settings, connect_timeout=connect_timeout)
    try:
        try:
            conn = await engine.connect()
        except Exception as e:  # noqa: BLE001 - driver raises OSError/asyncpg errors as well as DBAPIError
            raise classify(e, ConnectivityFailure, stage="connect") from e
        try:
            async with conn.begin():
                idle = idle_timeout_statement(settings, conn.dialect.server_version_info)
                if idle is not None:
                    try:
                        await conn.execute(idle)
                    except Exception as e:  # noqa: BLE001
                        raise classify(e, ConnectivityFailure, stage="connect") from e
                yield conn
        finally:
            await conn.close()
    finally:
        await engine.dispose()
