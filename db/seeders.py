from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import bcrypt
import sqlalchemy as sa
import structlog
from sqlalchemy import exc as sa_exc
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.schema import CreateTable

from db import schema
from db.connection import connect
from db.errors import ConnectivityFailure, DDLFailure, InsertFailure, classify, is_unique_violation
from db.placeholder_data import CUSTOMERS, INVOICES, REVENUE, USERS, Customer, Invoice, Revenue, User
from db.preflight import check_connection
from db.settings import DbSettings

logger = structlog.get_logger()


class ConflictPolicy(str, Enum):
    # One batched INSERT ... ON CONFLICT DO NOTHING; the database drops duplicates.
    IGNORE = "ignore"
    # Row-at-a-time under a SAVEPOINT; unique violations are skipped, anything else aborts.
    SKIP_ROW = "skip_row"


@dataclass(frozen=True)
class InsertResult:
    processed: int
    skipped: int = 0


def hash_password(plain: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def _row_key(table: sa.Table, row: dict[str, Any]) -> dict[str, str]:
    return {c.name: str(row[c.name]) for c in table.primary_key.columns if c.name in row}


async def insert_rows(
    conn: AsyncConnection,
    table: sa.Table,
    rows: Sequence[dict[str, Any]],
    *,
    policy: ConflictPolicy,
    conflict_target: Iterable[str] = (),
) -> InsertResult:
    """
    Insert `rows` into `table` without ever duplicating an existing key.

    `conflict_target` names the unique columns for IGNORE; empty means "any unique constraint".
    Driver errors leave as typed seed errors: connection loss as ConnectionClosed, the rest
    as InsertFailure.
    """
    if not rows:
        return InsertResult(processed=0)

    if policy is ConflictPolicy.IGNORE:
        stmt = pg_insert(table).on_conflict_do_nothing(index_elements=list(conflict_target) or None)
        try:
            await conn.execute(stmt, list(rows))
        except Exception as e:  # noqa: BLE001
            raise classify(e, InsertFailure, stage=table.name) from e
        return InsertResult(processed=len(rows))

    skipped = 0
    for row in rows:
        try:
            async with conn.begin_nested():
                await conn.execute(table.insert(), row)
        except sa_exc.IntegrityError as e:
            if not is_unique_violation(e):
                raise classify(e, InsertFailure, stage=table.name) from e
            skipped += 1
            logger.info("seed_row_skipped", table=table.name, reason="unique_violation", key=_row_key(table, row))
        except Exception as e:  # noqa: BLE001
            raise classify(e, InsertFailure, stage=table.name) from e
    return InsertResult(processed=len(rows), skipped=skipped)


async def seed_users(settings: DbSettings, users: Sequence[User] = USERS) -> int:
    if not await check_connection(settings):
        raise ConnectivityFailure("database connectivity check failed", stage=schema.users.name)

    rows = []
    for user in users:
        # bcrypt is CPU-bound; keep the event loop free while it runs.
        hashed = await asyncio.to_thread(hash_password, user.password, settings.password_hash_rounds)
        rows.append(dict(id=user.id, name=user.name, email=user.email, password=hashed))

    async with connect(settings) as conn:
        result = await insert_rows(conn, schema.users, rows, policy=ConflictPolicy.SKIP_ROW)

    logger.info("seed_table_finished", table=schema.users.name, processed=result.processed, skipped=result.skipped)
    return result.processed


async def _seed_table(
    settings: DbSettings,
    table: sa.Table,
    rows: list[dict[str, Any]],
    conflict_target: tuple[str, ...],
) -> int:
    async with connect(settings) as conn:
        try:
            await conn.execute(CreateTable(table, if_not_exists=True))
        except Exception as e:  # noqa: BLE001
            raise classify(e, DDLFailure, stage=table.name) from e
        result = await insert_rows(
            conn, table, rows, policy=ConflictPolicy.IGNORE, conflict_target=conflict_target
        )

    logger.info("seed_table_finished", table=table.name, processed=result.processed)
    return result.processed


async def seed_customers(settings: DbSettings, customers: Sequence[Customer] = CUSTOMERS) -> int:
    rows = [dict(id=c.id, name=c.name, email=c.email, image_url=c.image_url) for c in customers]
    return await _seed_table(settings, schema.customers, rows, ("id",))


async def seed_invoices(settings: DbSettings, invoices: Sequence[Invoice] = INVOICES) -> int:
    rows = [
        dict(id=i.id, customer_id=i.customer_id, amount=i.amount, status=i.status, date=i.date) for i in invoices
    ]
    return await _seed_table(settings, schema.invoices, rows, ("id",))


async def seed_revenue(settings: DbSettings, revenue: Sequence[Revenue] = REVENUE) -> int:
    rows = [dict(month=r.month, revenue=r.revenue) for r in revenue]
    return await _seed_table(settings, schema.revenue, rows, ("month",))
