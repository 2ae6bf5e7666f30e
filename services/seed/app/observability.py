from __future__ import annotations

import time
from collections.abc import Callable

from fastapi import FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from db.seed import SeedOutcome


REGISTRY = CollectorRegistry()
ProcessCollector(registry=REGISTRY)
PlatformCollector(registry=REGISTRY)
GCCollector(registry=REGISTRY)

HTTP_REQUESTS_TOTAL = Counter(
    "seed_http_requests_total",
    "Requests by matched route and status code",
    ["service", "route", "method", "status"],
    registry=REGISTRY,
)
HTTP_LATENCY = Histogram(
    "seed_http_request_duration_ms",
    "Request latency in milliseconds; a /seed request includes every retry and delay",
    ["service", "route", "method"],
    buckets=(5, 25, 100, 250, 1000, 2500, 5000, 10000, 30000, 60000),
    registry=REGISTRY,
)

SEED_RUN_TOTAL = Counter("seed_run_total", "Seed pipeline runs by final state", ["outcome"], registry=REGISTRY)
SEED_ATTEMPT_TOTAL = Counter("seed_attempt_total", "Seed pipeline attempts, retries included", registry=REGISTRY)
SEED_RUN_ATTEMPTS = Histogram(
    "seed_run_attempts",
    "Attempts used by one seed run",
    ["outcome"],
    buckets=(1, 2, 3, 5, 10),
    registry=REGISTRY,
)
CONNECTION_TEST_TOTAL = Counter(
    "connection_test_total", "Connectivity diagnostics by result", ["ok"], registry=REGISTRY
)


def setup_tracing(app: FastAPI, service_name: str) -> None:
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy() -> None:
    # Engines are created per pipeline step, so patch engine creation instead of one engine.
    instrumentor = SQLAlchemyInstrumentor()
    if not instrumentor.is_instrumented_by_opentelemetry:
        instrumentor.instrument()


def record_seed_run(request: Request, outcome: SeedOutcome) -> None:
    """Attach a finished run to the request; the metrics middleware counts it once the response is out."""
    request.state.seed_outcome = outcome


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def add_metrics_middleware(app: FastAPI, service_name: str) -> None:
    @app.middleware("http")
    async def _metrics(request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        resp = await call_next(request)
        route = _route_template(request)
        method = request.method
        HTTP_LATENCY.labels(service_name, route, method).observe((time.perf_counter() - start) * 1000)
        HTTP_REQUESTS_TOTAL.labels(service_name, route, method, str(resp.status_code)).inc()

        outcome: SeedOutcome | None = getattr(request.state, "seed_outcome", None)
        if outcome is not None:
            SEED_RUN_TOTAL.labels(outcome.state.value).inc()
            SEED_ATTEMPT_TOTAL.inc(outcome.attempt)
            SEED_RUN_ATTEMPTS.labels(outcome.state.value).observe(outcome.attempt)
        return resp

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
