"""
Trace-context propagation.

`Tracing` is the capability handed to services that need spans: start a
span, inject the active context into outbound headers, extract it from
inbound ones. It wraps an OpenTelemetry tracer provider; `Tracing.noop()`
wraps a non-recording provider so the same code runs in tests and in
deployments with tracing switched off.

Instrumentation is best-effort: every call into OpenTelemetry is guarded,
and a failure is logged at WARNING instead of reaching the request path.

Besides the W3C `traceparent` header, outbound calls carry `X-Trace-Id`
with the correlation id bound to the current request. A peer that does not
record spans can still log under the same id.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

from fastapi import Request
from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.trace import SpanKind, Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from . import config
from .errors import internal_error_fragment

logger = logging.getLogger(__name__)

TRACE_ID_HEADER = "X-Trace-Id"

_TRACE_ID_RE = re.compile(r"^[0-9a-f]{32}$")

# Correlation id of the request being handled by the current task.
current_trace_id: ContextVar[str | None] = ContextVar("current_trace_id", default=None)


def _format_trace_id(span: trace.Span) -> str | None:
    ctx = span.get_span_context()
    if not ctx.is_valid:
        return None
    return trace.format_trace_id(ctx.trace_id)


def new_trace_id() -> str:
    return uuid4().hex


def is_trace_id(value: str | None) -> bool:
    return bool(value) and bool(_TRACE_ID_RE.match(value.strip().lower()))


class SpanHandle:
    """
    Thin guard around an OpenTelemetry span.
    """

    def __init__(self, span: trace.Span) -> None:
        self._span = span

    @property
    def trace_id(self) -> str | None:
        try:
            return _format_trace_id(self._span)
        except Exception:
            logger.warning("span_read_failed", exc_info=True)
            return None

    @property
    def span_id(self) -> str | None:
        try:
            ctx = self._span.get_span_context()
            return trace.format_span_id(ctx.span_id) if ctx.is_valid else None
        except Exception:
            logger.warning("span_read_failed", exc_info=True)
            return None

    def set_attribute(self, key: str, value: Any) -> None:
        try:
            self._span.set_attribute(key, value)
        except Exception:
            logger.warning("span_attribute_failed key=%s", key, exc_info=True)

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        for key, value in attributes.items():
            self.set_attribute(key, value)

    def ok(self) -> None:
        try:
            self._span.set_status(Status(StatusCode.OK))
        except Exception:
            logger.warning("span_status_failed", exc_info=True)

    def error(self, description: str, exc: BaseException | None = None) -> None:
        try:
            if exc is not None:
                self._span.record_exception(exc)
            self._span.set_status(Status(StatusCode.ERROR, description))
        except Exception:
            logger.warning("span_status_failed", exc_info=True)


class Tracing:
    def __init__(
        self,
        tracer_provider: trace.TracerProvider,
        *,
        service_name: str,
    ) -> None:
        self.service_name = service_name
        self._provider = tracer_provider
        self._tracer = tracer_provider.get_tracer(service_name)
        self._propagator = CompositePropagator(
            [TraceContextTextMapPropagator(), W3CBaggagePropagator()]
        )

    @classmethod
    def noop(cls, service_name: str = "noop") -> "Tracing":
        return cls(trace.NoOpTracerProvider(), service_name=service_name)

    @contextmanager
    def span(
        self,
        name: str,
        attributes: Mapping[str, Any] | None = None,
        *,
        kind: SpanKind = SpanKind.INTERNAL,
        context: otel_context.Context | None = None,
    ) -> Iterator[SpanHandle]:
        """
        Open a span and make it current for the duration of the block.

        Errors raised inside the block propagate unchanged; the caller sets
        the span status.
        """
        token = None
        try:
            otel_span = self._tracer.start_span(
                name,
                context=context,
                kind=kind,
                attributes=dict(attributes or {}),
            )
            token = otel_context.attach(trace.set_span_in_context(otel_span))
        except Exception:
            logger.warning("span_start_failed name=%s", name, exc_info=True)
            otel_span = trace.INVALID_SPAN

        try:
            yield SpanHandle(otel_span)
        finally:
            try:
                if token is not None:
                    otel_context.detach(token)
                otel_span.end()
            except Exception:
                logger.warning("span_end_failed name=%s", name, exc_info=True)

    def inject(self, headers: dict[str, str]) -> dict[str, str]:
        """
        Add propagation headers for the active context to `headers`.
        """
        trace_id = current_trace_id.get()
        if trace_id:
            headers[TRACE_ID_HEADER] = trace_id
        try:
            self._propagator.inject(headers)
        except Exception:
            logger.warning("trace_inject_failed", exc_info=True)
        return headers

    def extract(self, headers: Mapping[str, str]) -> otel_context.Context | None:
        try:
            return self._propagator.extract(headers)
        except Exception:
            logger.warning("trace_extract_failed", exc_info=True)
            return None

    def shutdown(self) -> None:
        shutdown = getattr(self._provider, "shutdown", None)
        if shutdown is None:
            return None
        try:
            shutdown()
        except Exception:
            logger.warning("tracer_shutdown_failed service=%s", self.service_name, exc_info=True)


def init_tracing(service_name: str) -> Tracing:
    """
    Build the process tracer: OTLP/gRPC exporter behind a batch processor.

    Falls back to `Tracing.noop()` when tracing is disabled or the SDK
    cannot be set up; spans are then dropped but requests are unaffected.
    """
    if not config.tracing_enabled():
        logger.info("tracing_disabled service=%s", service_name)
        return Tracing.noop(service_name)

    endpoint = config.otlp_endpoint()
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.sdk.trace.sampling import ALWAYS_ON

        resource = Resource.create(
            {
                SERVICE_NAME: service_name,
                SERVICE_VERSION: "1.0.0",
                "environment": config.environment(),
            }
        )
        provider = TracerProvider(resource=resource, sampler=ALWAYS_ON)
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    except Exception:
        logger.warning("tracing_init_failed service=%s endpoint=%s", service_name, endpoint, exc_info=True)
        return Tracing.noop(service_name)

    logger.info("tracing_initialized service=%s endpoint=%s", service_name, endpoint)
    return Tracing(provider, service_name=service_name)


def get_tracing(request: Request) -> Tracing:
    tracing = getattr(request.app.state, "tracing", None)
    if tracing is None:
        tracing = Tracing.noop()
        request.app.state.tracing = tracing
    return tracing


class TraceContextMiddleware(BaseHTTPMiddleware):
    """
    Opens a SERVER span per request (joined to the caller's trace when a
    `traceparent` arrives) and binds the correlation id for logging.
    """

    def __init__(self, app, error_response: Callable[[], Response] = internal_error_fragment) -> None:
        super().__init__(app)
        self._error_response = error_response

    async def dispatch(self, request: Request, call_next) -> Response:
        tracing = get_tracing(request)
        parent = tracing.extract(request.headers)
        attributes = {
            "http.method": request.method,
            "http.target": request.url.path,
            "http.scheme": request.url.scheme,
        }

        with tracing.span(
            f"{request.method} {request.url.path}",
            attributes,
            kind=SpanKind.SERVER,
            context=parent,
        ) as span:
            trace_id = span.trace_id
            if trace_id is None:
                incoming = request.headers.get(TRACE_ID_HEADER, "").strip().lower()
                trace_id = incoming if is_trace_id(incoming) else new_trace_id()

            token = current_trace_id.set(trace_id)
            try:
                response = await call_next(request)
            except Exception as exc:
                # Crashes are rendered here so they still echo the correlation id.
                span.error("unhandled exception", exc)
                logger.exception("request_crashed method=%s path=%s", request.method, request.url.path)
                response = self._error_response()
            finally:
                current_trace_id.reset(token)

            span.set_attribute("http.status_code", response.status_code)
            if response.status_code >= 500:
                span.error(f"HTTP {response.status_code}")
            else:
                span.ok()
            response.headers[TRACE_ID_HEADER] = trace_id
            return response
