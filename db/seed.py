from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from enum import Enum

import structlog
from opentelemetry import trace

from db.errors import describe, is_retryable
from db.preflight import ensure_extension, ensure_users_table
from db.seeders import seed_customers, seed_invoices, seed_revenue, seed_users
from db.settings import SETTINGS, DbSettings

logger = structlog.get_logger()

MAX_ATTEMPTS = 3
RETRY_DELAY_S = 2.0


class RunState(str, Enum):
    # Terminal states. Idle is "not called yet"; Running is the body of seed_database.
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class SeedCounts:
    users: int
    customers: int
    invoices: int
    revenue: int


@dataclass(frozen=True)
class SeedOutcome:
    state: RunState
    attempt: int
    counts: SeedCounts | None = None
    error: Exception | None = None


async def run_pipeline(settings: DbSettings) -> SeedCounts:
    # Fixed order; each step opens and releases its own connection.
    await ensure_extension(settings)
    await ensure_users_table(settings)
    users = await seed_users(settings)
    customers = await seed_customers(settings)
    invoices = await seed_invoices(settings)
    revenue = await seed_revenue(settings)
    return SeedCounts(users=users, customers=customers, invoices=invoices, revenue=revenue)


async def seed_database(
    settings: DbSettings,
    *,
    max_attempts: int = MAX_ATTEMPTS,
    retry_delay_s: float = RETRY_DELAY_S,
    pipeline: Callable[[DbSettings], Awaitable[SeedCounts]] = run_pipeline,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> SeedOutcome:
    """
    Run the whole pipeline, restarting it from the top when the connection drops.

    Only a connection-closed error is retried, at most `max_attempts` runs in total with a
    fixed `retry_delay_s` pause in between. Any other error ends the run on the attempt that
    raised it.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    tracer = trace.get_tracer("seed.pipeline")

    attempt = 0
    while True:
        attempt += 1
        with tracer.start_as_current_span("seed.attempt") as span:
            span.set_attribute("seed.attempt", attempt)
            logger.info("seed_attempt_started", attempt=attempt, max_attempts=max_attempts)
            try:
                counts = await pipeline(settings)
            except Exception as e:  # noqa: BLE001
                retry = is_retryable(e) and attempt < max_attempts
                span.record_exception(e)
                span.set_attribute("seed.outcome", "retry" if retry else RunState.FAILED.value)
                logger.error("seed_attempt_failed", attempt=attempt, will_retry=retry, **describe(e))
                if retry:
                    await sleep(retry_delay_s)
                    continue
                return SeedOutcome(state=RunState.FAILED, attempt=attempt, error=e)

            span.set_attribute("seed.outcome", RunState.SUCCEEDED.value)
            logger.info("seed_attempt_finished", attempt=attempt, counts=asdict(counts))
            return SeedOutcome(state=RunState.SUCCEEDED, attempt=attempt, counts=counts)


def configure_cli_logging() -> None:
    # stdout carries only the JSON summary.
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(default=str),
        ],
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the dashboard schema and insert seed rows.")
    parser.add_argument("--database-url", default=SETTINGS.database_url)
    parser.add_argument("--ssl", default=SETTINGS.database_ssl, help="asyncpg ssl mode (disable, require, ...).")
    parser.add_argument("--max-attempts", type=int, default=SETTINGS.seed_max_attempts)
    parser.add_argument("--retry-delay", type=float, default=SETTINGS.seed_retry_delay_s)
    args = parser.parse_args()
    configure_cli_logging()

    settings = SETTINGS.model_copy(update={"database_url": args.database_url, "database_ssl": args.ssl})
    outcome = asyncio.run(
        seed_database(settings, max_attempts=args.max_attempts, retry_delay_s=args.retry_delay)
    )

    summary = {"state": outcome.state.value, "attempt": outcome.attempt}
    if outcome.counts is not None:
        summary["counts"] = asdict(outcome.counts)
    if outcome.error is not None:
        summary["error"] = describe(outcome.error)
    print(json.dumps(summary, indent=2, default=str))
    if outcome.state is not RunState.SUCCEEDED:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
