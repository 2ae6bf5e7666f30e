from __future__ import annotations

from typing import Any

from sqlalchemy import exc as sa_exc

UNIQUE_VIOLATION = "23505"

# connection_exception, connection_does_not_exist, connection_failure, admin_shutdown
CONNECTION_CLOSED_SQLSTATES = frozenset({"08000", "08003", "08006", "57P01"})


class SeedError(RuntimeError):
    """Base for every failure the bootstrap pipeline surfaces to its caller."""

    retryable = False

    def __init__(self, message: str, *, stage: str | None = None, sqlstate: str | None = None):
        super().__init__(message)
        self.stage = stage
        self.sqlstate = sqlstate


class ConfigurationError(SeedError):
    pass


class ConnectivityFailure(SeedError):
    pass


class CatalogQueryFailure(SeedError):
    pass


class DDLFailure(SeedError):
    pass


class InsertFailure(SeedError):
    pass


class ConnectionClosed(SeedError):
    retryable = True


def sqlstate(exc: BaseException) -> str | None:
    """
    Return the SQLSTATE carried by a driver error.

    SQLAlchemy wraps the asyncpg adapter error in `.orig`, and the adapter keeps the
    native asyncpg exception as its `__cause__`; any of the three may hold the code.
    """
    if isinstance(exc, SeedError):
        return exc.sqlstate
    orig = getattr(exc, "orig", None)
    for candidate in (exc, orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_unique_violation(exc: BaseException) -> bool:
    return sqlstate(exc) == UNIQUE_VIOLATION


def is_connection_closed(exc: BaseException) -> bool:
    if isinstance(exc, ConnectionClosed):
        return True
    if isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated:
        return True
    return sqlstate(exc) in CONNECTION_CLOSED_SQLSTATES


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, SeedError):
        return exc.retryable
    return is_connection_closed(exc)


def classify(exc: BaseException, fallback: type[SeedError], *, stage: str) -> SeedError:
    """Map a raw driver error onto the taxonomy; connection loss wins over the stage's own class."""
    if isinstance(exc, SeedError):
        return exc
    cls = ConnectionClosed if is_connection_closed(exc) else fallback
    return cls(str(exc) or type(exc).__name__, stage=stage, sqlstate=sqlstate(exc))


def describe(exc: BaseException) -> dict[str, Any]:
    cause = exc.__cause__
    return {
        "type": type(exc).__name__,
        "stage": getattr(exc, "stage", None),
        "sqlstate": sqlstate(exc),
        "message": str(exc),
        "cause": {"type": type(cause).__name__, "message": str(cause)} if cause is not None else None,
    }
