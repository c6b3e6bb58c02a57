"""Trace-context propagation across the portal and the Record Service."""

from fastapi.testclient import TestClient
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.trace import SpanKind, StatusCode

import customers_main
import main
from auth.repository import MemoryUserRepository
from core.tracing import TRACE_ID_HEADER, Tracing, is_trace_id
from customers.repository import MemoryCustomerRepository

INCOMING_TRACEPARENT = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"


def _spans_by_name(span_exporter):
    spans = {}
    for span in span_exporter.get_finished_spans():
        spans.setdefault(span.name, []).append(span)
    return spans


def test_validate_loan_spans_form_one_trace_across_services(logged_in_client, span_exporter):
    span_exporter.clear()

    res = logged_in_client.get("/api/validate-loan")

    assert res.status_code == 200
    spans = _spans_by_name(span_exporter)
    (portal_server,) = spans["GET /api/validate-loan"]
    (validate,) = spans["api.validate_loan"]
    (client_call,) = spans["http.client.government_bank"]
    (records_server,) = spans["GET /api/customer"]

    trace_ids = {s.context.trace_id for s in (portal_server, validate, client_call, records_server)}
    assert len(trace_ids) == 1

    assert validate.parent.span_id == portal_server.context.span_id
    assert client_call.parent.span_id == validate.context.span_id
    assert records_server.parent.span_id == client_call.context.span_id
    assert records_server.kind is SpanKind.SERVER
    assert client_call.kind is SpanKind.CLIENT

    assert validate.attributes["loan.status"] == "Approved"
    assert validate.attributes["loan.amount"] == 12345.6
    assert validate.status.status_code is StatusCode.OK
    assert client_call.attributes["http.status_code"] == 200
    assert res.headers[TRACE_ID_HEADER] == format(portal_server.context.trace_id, "032x")


def test_not_found_keeps_request_span_ok_without_outcome(client, span_exporter):
    client.post(
        "/auth/register",
        data={"first_name": "No", "last_name": "Body", "username": "nobody", "password": "pw"},
    )
    client.post("/auth/login", data={"username": "nobody", "password": "pw"})
    span_exporter.clear()

    assert client.get("/api/validate-loan").status_code == 200

    (validate,) = _spans_by_name(span_exporter)["api.validate_loan"]
    assert validate.status.status_code is StatusCode.OK
    assert "loan.status" not in validate.attributes


def test_inbound_traceparent_is_continued(client, span_exporter):
    span_exporter.clear()

    res = client.get("/health", headers={"traceparent": INCOMING_TRACEPARENT})

    assert res.headers[TRACE_ID_HEADER] == "4bf92f3577b34da6a3ce929d0e0e4736"
    (server,) = span_exporter.get_finished_spans()
    assert server.parent.span_id == 0x00F067AA0BA902B7


def test_auth_spans_record_outcome(client, span_exporter):
    span_exporter.clear()

    client.post("/auth/login", data={"username": "ghost", "password": "pw"})

    (login_span,) = _spans_by_name(span_exporter)["auth.login"]
    assert login_span.status.status_code is StatusCode.ERROR
    assert login_span.attributes["user.username"] == "ghost"


def test_noop_tracing_still_correlates(users, sessions, record_client):
    app = main.create_app(users=users, sessions=sessions, record_client=record_client, tracing=Tracing.noop())

    with TestClient(app) as client:
        generated = client.get("/health").headers[TRACE_ID_HEADER]
        echoed = client.get(
            "/health", headers={TRACE_ID_HEADER: "0af7651916cd43dd8448eb211c80319c"}
        ).headers[TRACE_ID_HEADER]

    assert is_trace_id(generated)
    assert echoed == "0af7651916cd43dd8448eb211c80319c"


def test_noop_inject_sends_correlation_header_only():
    from core.tracing import current_trace_id

    token = current_trace_id.set("0af7651916cd43dd8448eb211c80319c")
    try:
        headers = Tracing.noop().inject({})
    finally:
        current_trace_id.reset(token)

    assert headers == {TRACE_ID_HEADER: "0af7651916cd43dd8448eb211c80319c"}


class ExplodingProcessor(SpanProcessor):
    def on_start(self, span, parent_context=None):
        raise RuntimeError("collector down")

    def on_end(self, span):
        raise RuntimeError("collector down")


def test_broken_instrumentation_never_fails_requests(users, sessions, record_client):
    provider = TracerProvider()
    provider.add_span_processor(ExplodingProcessor())
    app = main.create_app(
        users=users,
        sessions=sessions,
        record_client=record_client,
        tracing=Tracing(provider, service_name="broken"),
    )

    with TestClient(app) as client:
        client.post(
            "/auth/register",
            data={"first_name": "Alice", "last_name": "Smith", "username": "alice", "password": "pw"},
        )
        client.post("/auth/login", data={"username": "alice", "password": "pw"})
        res = client.get("/api/validate-loan")

    assert res.status_code == 200
    assert "12345.60" in res.text
    assert is_trace_id(res.headers[TRACE_ID_HEADER])


class CrashingUserRepository(MemoryUserRepository):
    async def get_by_username(self, username):
        raise RuntimeError("secret-db-detail")


def test_unexpected_failure_is_generic_500_with_correlation_id(sessions, record_client, tracing, span_exporter):
    app = main.create_app(
        users=CrashingUserRepository(),
        sessions=sessions,
        record_client=record_client,
        tracing=tracing,
    )
    span_exporter.clear()

    with TestClient(app, raise_server_exceptions=False) as client:
        res = client.post("/auth/login", data={"username": "alice", "password": "pw"})

    assert res.status_code == 500
    assert "secret-db-detail" not in res.text
    assert "Something went wrong" in res.text
    (server,) = _spans_by_name(span_exporter)["POST /auth/login"]
    assert res.headers[TRACE_ID_HEADER] == format(server.context.trace_id, "032x")
    assert server.status.status_code is StatusCode.ERROR


class CrashingCustomerRepository(MemoryCustomerRepository):
    async def list_all(self):
        raise RuntimeError("secret-db-detail")


def test_record_service_failure_is_json_500_with_correlation_id(records_tracing):
    app = customers_main.create_app(customers=CrashingCustomerRepository(), tracing=records_tracing)

    with TestClient(app, raise_server_exceptions=False) as client:
        res = client.get("/api/customers")

    assert res.status_code == 500
    assert res.json() == {"error": "Internal server error"}
    assert is_trace_id(res.headers[TRACE_ID_HEADER])
