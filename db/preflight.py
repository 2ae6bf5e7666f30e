from __future__ import annotations

from typing import Any

import sqlalchemy as sa
import structlog
from sqlalchemy.schema import CreateTable

from db import schema
from db.connection import connect
from db.errors import CatalogQueryFailure, DDLFailure, classify
from db.settings import DbSettings

logger = structlog.get_logger()


async def select_one(settings: DbSettings, *, connect_timeout: float | None = None) -> list[dict[str, Any]]:
    async with connect(settings, connect_timeout=connect_timeout) as conn:
        rows = (await conn.execute(sa.text("SELECT 1 AS test"))).mappings().all()
    return [dict(r) for r in rows]


async def check_connection(settings: DbSettings) -> bool:
    """Connectivity probe. Reports False instead of raising."""
    try:
        await select_one(settings)
    except Exception as e:  # noqa: BLE001
        logger.error("connection_check_failed", error=str(e), error_type=type(e).__name__)
        return False
    return True


async def ensure_extension(settings: DbSettings, name: str = schema.UUID_EXTENSION) -> bool:
    """Install `name` if the catalog does not list it. Returns True when it was created."""
    async with connect(settings) as conn:
        try:
            found = (
                await conn.execute(sa.text("SELECT 1 FROM pg_extension WHERE extname = :name"), {"name": name})
            ).first()
        except Exception as e:  # noqa: BLE001
            raise classify(e, CatalogQueryFailure, stage="extension") from e
        if found is not None:
            logger.info("extension_present", extension=name)
            return False
        try:
            # Identifier, not a bind parameter; quote it for names like uuid-ossp.
            quoted = conn.dialect.identifier_preparer.quote_identifier(name)
            await conn.execute(sa.text(f"CREATE EXTENSION IF NOT EXISTS {quoted}"))
        except Exception as e:  # noqa: BLE001
            raise classify(e, DDLFailure, stage="extension") from e
    logger.info("extension_created", extension=name)
    return True


async def ensure_users_table(settings: DbSettings) -> bool:
    """Create public.users when the catalog has no such table. Returns True when it was created."""
    async with connect(settings) as conn:
        try:
            exists = (
                await conn.execute(
                    sa.text(
                        "SELECT EXISTS (SELECT FROM information_schema.tables "
                        "WHERE table_schema = 'public' AND table_name = 'users')"
                    )
                )
            ).scalar_one()
        except Exception as e:  # noqa: BLE001
            raise classify(e, CatalogQueryFailure, stage="users_table") from e
        if exists:
            logger.info("table_present", table=schema.users.name)
            return False
        try:
            await conn.execute(CreateTable(schema.users))
        except Exception as e:  # noqa: BLE001
            raise classify(e, DDLFailure, stage="users_table") from e
    logger.info("table_created", table=schema.users.name)
    return True
