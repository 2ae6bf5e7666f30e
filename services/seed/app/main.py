from __future__ import annotations

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from db.connection import redact_url
from db.errors import describe
from db.preflight import select_one
from db.seed import RunState, seed_database
from db.settings import DbSettings
from services.seed.app import observability
from services.seed.app.db import get_db_settings
from services.seed.app.logging import configure_logging, logger
from services.seed.app.schemas import (
    ConnectionEnv,
    ConnectionErrorResponse,
    ConnectionTestResponse,
    SeedDetails,
    SeedErrorResponse,
    SeedResponse,
)
from services.seed.app.settings import SETTINGS


app = FastAPI(title="Dashboard Seed API", version="0.1.0")
configure_logging(SETTINGS.log_level, SETTINGS.service_name)
observability.setup_tracing(app, service_name=SETTINGS.service_name)
observability.add_metrics_middleware(app, service_name=SETTINGS.service_name)
observability.instrument_sqlalchemy()


def _error_message(e: Exception) -> str:
    return str(e) or "Unknown error"


@app.get("/healthz")
async def healthz() -> dict:
    return {"ok": True}


@app.get("/seed", response_model=SeedResponse, responses={500: {"model": SeedErrorResponse}})
async def seed(request: Request, settings: DbSettings = Depends(get_db_settings)) -> SeedResponse | JSONResponse:
    outcome = await seed_database(
        settings,
        max_attempts=settings.seed_max_attempts,
        retry_delay_s=settings.seed_retry_delay_s,
    )
    observability.record_seed_run(request, outcome)

    if outcome.state is RunState.SUCCEEDED and outcome.counts is not None:
        counts = outcome.counts
        logger.info("seed_request_finished", status="OK", attempt=outcome.attempt)
        return SeedResponse(
            message="Database seeded successfully",
            details=SeedDetails(
                users_created=counts.users,
                customers_created=counts.customers,
                invoices_created=counts.invoices,
                revenue_created=counts.revenue,
            ),
        )

    error = outcome.error or RuntimeError("Unknown error")
    logger.info("seed_request_finished", status="ERROR", attempt=outcome.attempt)
    body = SeedErrorResponse(error=_error_message(error), details=describe(error), attempt=outcome.attempt)
    return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))


@app.get(
    "/seed/test-connection",
    response_model=ConnectionTestResponse,
    responses={500: {"model": ConnectionErrorResponse}},
)
async def connection_test(settings: DbSettings = Depends(get_db_settings)) -> ConnectionTestResponse | JSONResponse:
    try:
        rows = await select_one(settings, connect_timeout=settings.diagnostic_connect_timeout_s)
    except Exception as e:  # noqa: BLE001
        observability.CONNECTION_TEST_TOTAL.labels("false").inc()
        logger.error("connection_test_failed", **describe(e))
        url = settings.database_url
        body = ConnectionErrorResponse(
            error=_error_message(e),
            details=describe(e),
            env=ConnectionEnv(has_url=bool(url), url_length=len(url) if url else None, url=redact_url(url)),
        )
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))

    observability.CONNECTION_TEST_TOTAL.labels("true").inc()
    return ConnectionTestResponse(message="Database connection successful", result=rows)
