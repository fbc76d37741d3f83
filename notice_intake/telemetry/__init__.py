"""Prometheus metrics and OpenTelemetry tracing for the intake API."""

from __future__ import annotations

import time
from functools import lru_cache

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..core.config import Settings

HTTP_REQUESTS = Counter(
    "notice_intake_http_requests_total",
    "HTTP requests by route template and status",
    labelnames=("method", "route", "status"),
)
HTTP_LATENCY = Histogram(
    "notice_intake_http_request_duration_seconds",
    "Request latency by route template",
    labelnames=("method", "route"),
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)
NOTICE_OUTCOMES = Counter(
    "notice_intake_submissions_total",
    "Notice submissions by pipeline outcome and notice type",
    labelnames=("outcome", "notice_type"),
)
URLS_SPLIT = Counter(
    "notice_intake_urls_deconcatenated_total",
    "Submitted URL values that held several URLs",
    labelnames=("field",),
)
ATTACHMENT_BYTES = Histogram(
    "notice_intake_attachment_bytes",
    "Decoded attachment sizes",
    labelnames=("kind",),
    buckets=(1_024, 16_384, 131_072, 1_048_576, 8_388_608, 33_554_432),
)

tracer = trace.get_tracer("notice_intake")


def record_outcome(outcome: str, notice_type: str | None = None) -> None:
    """Count one submission; the type is ``unknown`` before it has been shaped."""

    NOTICE_OUTCOMES.labels(outcome=outcome, notice_type=notice_type or "unknown").inc()


def record_split(field: str) -> None:
    URLS_SPLIT.labels(field=field).inc()


def observe_attachment(kind: str, size: int) -> None:
    ATTACHMENT_BYTES.labels(kind=kind).observe(size)


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Record request counts and latency labelled by the matched route template."""

    def __init__(self, app, *, metrics_path: str) -> None:
        super().__init__(app)
        self._metrics_path = metrics_path

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if request.url.path == self._metrics_path:
            return await call_next(request)
        start = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            route = getattr(request.scope.get("route"), "path", "unmatched")
            HTTP_REQUESTS.labels(method=request.method, route=route, status=status).inc()
            HTTP_LATENCY.labels(method=request.method, route=route).observe(
                time.perf_counter() - start
            )


def setup_prometheus(app: FastAPI, settings: Settings) -> None:
    """Attach request metrics and serve the registry at the configured path."""

    app.add_middleware(RequestMetricsMiddleware, metrics_path=settings.prometheus_metrics_path)

    @app.get(settings.prometheus_metrics_path, include_in_schema=False)
    async def prometheus_metrics() -> Response:  # pragma: no cover - trivial
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def configure_tracing(app: FastAPI, settings: Settings) -> bool:
    """Instrument ``app`` when an OTLP endpoint is configured; report whether it was."""

    if not settings.otel_exporter_otlp_endpoint:
        return False
    provider = _tracer_provider(
        settings.otel_exporter_otlp_endpoint,
        settings.otel_exporter_otlp_headers or "",
        settings.otel_service_name or settings.project_name,
    )
    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=provider,
        excluded_urls=settings.prometheus_metrics_path,
    )
    return True


@lru_cache
def _tracer_provider(endpoint: str, raw_headers: str, service_name: str) -> TracerProvider:
    # One provider per process; the global can only be set once.
    headers = dict(
        (key.strip(), value.strip())
        for key, _, value in (pair.partition("=") for pair in raw_headers.split(","))
        if key.strip()
    )
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, headers=headers))
    )
    trace.set_tracer_provider(provider)
    return provider
