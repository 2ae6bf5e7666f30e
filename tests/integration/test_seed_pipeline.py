from __future__ import annotations

import uuid

import pytest
import sqlalchemy as sa

from db.connection import connect
from db.placeholder_data import CUSTOMERS, INVOICES, REVENUE, USERS, Revenue, User
from db.preflight import check_connection, ensure_extension, ensure_users_table, select_one
from db.seed import RunState, SeedCounts, seed_database
from db.seeders import seed_customers, seed_invoices, seed_revenue, seed_users
from db.settings import DbSettings

TABLES = ("users", "customers", "invoices", "revenue")


async def _scalar(settings: DbSettings, sql: str, **params: object) -> object:
    async with connect(settings) as conn:
        return (await conn.execute(sa.text(sql), params)).scalar_one()


async def _table_counts(settings: DbSettings) -> dict[str, int]:
    return {t: int(await _scalar(settings, f"SELECT COUNT(*) FROM {t}")) for t in TABLES}


@pytest.mark.asyncio
async def test_seeding_twice_is_idempotent(db_settings: DbSettings):
    expected = SeedCounts(users=len(USERS), customers=len(CUSTOMERS), invoices=len(INVOICES), revenue=len(REVENUE))

    first = await seed_database(db_settings)
    assert first.state is RunState.SUCCEEDED, first.error
    assert first.attempt == 1
    assert first.counts == expected
    after_first = await _table_counts(db_settings)

    second = await seed_database(db_settings)
    assert second.state is RunState.SUCCEEDED, second.error
    assert second.counts == expected
    after_second = await _table_counts(db_settings)

    assert after_first == after_second
    assert after_second == {"users": 1, "customers": 6, "invoices": 13, "revenue": 12}


@pytest.mark.asyncio
async def test_stored_password_is_bcrypt_hash(db_settings: DbSettings):
    await seed_database(db_settings)
    stored = await _scalar(db_settings, "SELECT password FROM users WHERE email = :e", e=USERS[0].email)
    assert stored != USERS[0].password
    assert str(stored).startswith("$2b$10$")


@pytest.mark.asyncio
async def test_colliding_users_leave_exactly_one_row(db_settings: DbSettings):
    await ensure_extension(db_settings)
    await ensure_users_table(db_settings)
    original = USERS[0]
    colliding = [
        original,
        User(id=uuid.uuid4(), name="Same Email", email=original.email, password="other"),
        User(id=original.id, name="Same Id", email="same-id@nextmail.com", password="other"),
    ]

    processed = await seed_users(db_settings, colliding)

    assert processed == 3
    assert await _scalar(db_settings, "SELECT COUNT(*) FROM users WHERE email = :e", e=original.email) == 1
    assert await _scalar(db_settings, "SELECT COUNT(*) FROM users WHERE id = :i", i=original.id) == 1
    assert await _scalar(db_settings, "SELECT COUNT(*) FROM users WHERE email = 'same-id@nextmail.com'") == 0


@pytest.mark.asyncio
async def test_colliding_rows_are_suppressed_by_statement(db_settings: DbSettings):
    await ensure_extension(db_settings)

    assert await seed_customers(db_settings, [CUSTOMERS[0], CUSTOMERS[0]]) == 2
    assert await _scalar(db_settings, "SELECT COUNT(*) FROM customers WHERE id = :i", i=CUSTOMERS[0].id) == 1

    assert await seed_invoices(db_settings, [INVOICES[0], INVOICES[0]]) == 2
    assert await _scalar(db_settings, "SELECT COUNT(*) FROM invoices WHERE id = :i", i=INVOICES[0].id) == 1

    assert await seed_revenue(db_settings, [Revenue(month="Jan", revenue=2000), Revenue(month="Jan", revenue=9999)]) == 2
    assert await _scalar(db_settings, "SELECT revenue FROM revenue WHERE month = 'Jan'") == 2000


@pytest.mark.asyncio
async def test_preflight_is_a_noop_when_objects_exist(db_settings: DbSettings):
    assert await check_connection(db_settings)
    assert await select_one(db_settings) == [{"test": 1}]

    await ensure_extension(db_settings)
    await ensure_users_table(db_settings)

    assert await ensure_extension(db_settings) is False
    assert await ensure_users_table(db_settings) is False


@pytest.mark.asyncio
async def test_unknown_extension_raises_ddl_failure(db_settings: DbSettings):
    from db.errors import DDLFailure

    with pytest.raises(DDLFailure) as info:
        await ensure_extension(db_settings, "no_such_extension")
    assert info.value.stage == "extension"
    assert not info.value.retryable


@pytest.mark.asyncio
async def test_idle_timeout_is_applied_after_connect(db_settings: DbSettings):
    assert await _scalar(db_settings, "SHOW idle_session_timeout") == "20s"
    assert await _scalar(db_settings, "SHOW application_name") == "dashboard-seed"
