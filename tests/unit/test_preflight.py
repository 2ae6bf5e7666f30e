from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy.dialects import postgresql

from db.errors import CatalogQueryFailure, ConnectionClosed, DDLFailure
from db.settings import DbSettings


class _Result:
    def __init__(self, row: object):
        self.row = row

    def first(self) -> object:
        return self.row

    def scalar_one(self) -> object:
        return self.row


class CatalogConnection:
    """Answers catalog lookups with `found`; raises the scripted error for the n-th execute call."""

    dialect = postgresql.dialect()

    def __init__(self, errors: dict[int, Exception] | None = None, found: object = None):
        self.errors = errors or {}
        self.found = found
        self.executed: list[object] = []

    async def execute(self, stmt: object, params: object = None) -> _Result:
        index = len(self.executed)
        self.executed.append(stmt)
        if index in self.errors:
            raise self.errors[index]
        return _Result(self.found)


class _DriverError(Exception):
    def __init__(self, msg: str, sqlstate: str):
        super().__init__(msg)
        self.sqlstate = sqlstate


def _denied(stmt: str) -> sa_exc.ProgrammingError:
    return sa_exc.ProgrammingError(stmt, {}, _DriverError("permission denied", "42501"))


def _use(monkeypatch, module: str, conn: CatalogConnection) -> None:
    @asynccontextmanager
    async def fake_connect(settings, **kwargs):
        yield conn

    monkeypatch.setattr(f"{module}.connect", fake_connect)


@pytest.fixture()
def settings() -> DbSettings:
    return DbSettings(database_url="postgresql://u:p@h/db")


@pytest.mark.asyncio
async def test_extension_catalog_failure_is_typed(monkeypatch, settings: DbSettings) -> None:
    from db.preflight import ensure_extension

    conn = CatalogConnection({0: _denied("SELECT 1 FROM pg_extension")})
    _use(monkeypatch, "db.preflight", conn)

    with pytest.raises(CatalogQueryFailure) as info:
        await ensure_extension(settings)
    assert info.value.stage == "extension"
    assert info.value.sqlstate == "42501"
    assert not info.value.retryable
    assert len(conn.executed) == 1


@pytest.mark.asyncio
async def test_extension_ddl_failure_is_typed(monkeypatch, settings: DbSettings) -> None:
    from db.preflight import ensure_extension

    conn = CatalogConnection({1: _denied("CREATE EXTENSION")}, found=None)
    _use(monkeypatch, "db.preflight", conn)

    with pytest.raises(DDLFailure) as info:
        await ensure_extension(settings)
    assert info.value.stage == "extension"
    assert not info.value.retryable
    assert 'CREATE EXTENSION IF NOT EXISTS "uuid-ossp"' in str(conn.executed[1])


@pytest.mark.asyncio
async def test_users_table_catalog_failure_is_typed(monkeypatch, settings: DbSettings) -> None:
    from db.preflight import ensure_users_table

    _use(monkeypatch, "db.preflight", CatalogConnection({0: _denied("SELECT EXISTS")}))

    with pytest.raises(CatalogQueryFailure) as info:
        await ensure_users_table(settings)
    assert info.value.stage == "users_table"


@pytest.mark.asyncio
async def test_users_table_ddl_failure_is_typed(monkeypatch, settings: DbSettings) -> None:
    from db.preflight import ensure_users_table

    conn = CatalogConnection({1: _denied("CREATE TABLE users")}, found=False)
    _use(monkeypatch, "db.preflight", conn)

    with pytest.raises(DDLFailure) as info:
        await ensure_users_table(settings)
    assert info.value.stage == "users_table"
    assert len(conn.executed) == 2


@pytest.mark.asyncio
async def test_catalog_connection_loss_stays_retryable(monkeypatch, settings: DbSettings) -> None:
    from db.preflight import ensure_extension

    lost = sa_exc.InterfaceError("SELECT", {}, Exception("connection is closed"), connection_invalidated=True)
    _use(monkeypatch, "db.preflight", CatalogConnection({0: lost}))

    with pytest.raises(ConnectionClosed) as info:
        await ensure_extension(settings)
    assert info.value.retryable


@pytest.mark.asyncio
async def test_seed_table_create_failure_is_typed(monkeypatch, settings: DbSettings) -> None:
    from db.seeders import seed_customers

    conn = CatalogConnection({0: _denied("CREATE TABLE customers")})
    _use(monkeypatch, "db.seeders", conn)

    with pytest.raises(DDLFailure) as info:
        await seed_customers(settings)
    assert info.value.stage == "customers"
    assert not info.value.retryable
    # No insert after a failed CREATE TABLE.
    assert len(conn.executed) == 1
