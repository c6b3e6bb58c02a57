"""RecordServiceClient: one outcome per downstream behaviour."""

import asyncio
import json

import httpx
import pytest

from core.errors import ContractViolation, DependencyError, DomainNotFound
from core.tracing import TRACE_ID_HEADER, Tracing, current_trace_id
from helpers import ALICE_RECORD
from loans.client import (
    DecodeFailure,
    DownstreamError,
    DownstreamUnreachable,
    RecordNotFound,
    RecordServiceClient,
)
from loans.schemas import LoanQuery

QUERY = LoanQuery(first_name="Alice", last_name="Smith")


def _client(handler, timeout_s=1.0):
    return RecordServiceClient(
        "http://records.test/",
        timeout_s=timeout_s,
        transport=httpx.MockTransport(handler),
    )


async def test_success_decodes_record_and_sends_contract_query():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={**ALICE_RECORD, "id": 1, "created_at": "2024-01-01T00:00:00Z"})

    record = await _client(handler).fetch_record(QUERY, Tracing.noop())

    assert record.loan_amount_requested == 12345.6
    assert record.loan_status == "Approved"
    assert seen[0].method == "GET"
    assert seen[0].url.path == "/api/customer"
    assert dict(seen[0].url.params) == {"first_name": "Alice", "last_name": "Smith"}


async def test_names_are_url_encoded():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(404)

    query = LoanQuery(first_name="Anne Marie", last_name="O'Neil&Co")
    with pytest.raises(RecordNotFound):
        await _client(handler).fetch_record(query, Tracing.noop())

    assert seen[0].url.params["first_name"] == "Anne Marie"
    assert seen[0].url.params["last_name"] == "O'Neil&Co"


async def test_not_found_is_a_domain_outcome():
    client = _client(lambda request: httpx.Response(404, json={"error": "Customer not found"}))

    with pytest.raises(RecordNotFound) as exc_info:
        await client.fetch_record(QUERY, Tracing.noop())

    assert isinstance(exc_info.value, DomainNotFound)
    assert exc_info.value.status_code == 200


@pytest.mark.parametrize("status_code", [400, 500, 502, 201])
async def test_other_statuses_are_downstream_errors(status_code):
    client = _client(lambda request: httpx.Response(status_code, json=ALICE_RECORD))

    with pytest.raises(DownstreamError) as exc_info:
        await client.fetch_record(QUERY, Tracing.noop())

    assert isinstance(exc_info.value, DependencyError)
    assert exc_info.value.status_code == 503


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"[]",
        json.dumps({k: v for k, v in ALICE_RECORD.items() if k != "loan_status"}).encode(),
        json.dumps({**ALICE_RECORD, "loan_amount_requested": "lots"}).encode(),
        json.dumps({**ALICE_RECORD, "first_name": 42}).encode(),
    ],
)
async def test_malformed_success_body_is_contract_violation(body):
    client = _client(lambda request: httpx.Response(200, content=body))

    with pytest.raises(DecodeFailure) as exc_info:
        await client.fetch_record(QUERY, Tracing.noop())

    assert isinstance(exc_info.value, ContractViolation)
    assert exc_info.value.status_code == 500


async def test_corrupt_content_encoding_is_contract_violation():
    def handler(request):
        return httpx.Response(200, content=b"garbage", headers={"content-encoding": "gzip"})

    with pytest.raises(DecodeFailure) as exc_info:
        await _client(handler).fetch_record(QUERY, Tracing.noop())

    assert exc_info.value.status_code == 500
    assert not isinstance(exc_info.value, DownstreamUnreachable)


async def test_integer_amount_is_accepted():
    client = _client(lambda request: httpx.Response(200, json={**ALICE_RECORD, "loan_amount_requested": 500}))

    record = await client.fetch_record(QUERY, Tracing.noop())

    assert record.loan_amount_requested == 500.0


async def test_connection_refused_is_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DownstreamUnreachable) as exc_info:
        await _client(handler).fetch_record(QUERY, Tracing.noop())

    assert exc_info.value.status_code == 503


async def test_timeout_is_unreachable_and_distinct_from_not_found():
    async def slow(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json=ALICE_RECORD)

    with pytest.raises(DownstreamUnreachable) as exc_info:
        await _client(slow, timeout_s=0.05).fetch_record(QUERY, Tracing.noop())

    assert exc_info.value.message != RecordNotFound().message
    assert exc_info.value.status_code != RecordNotFound().status_code


async def test_httpx_timeout_is_unreachable():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(DownstreamUnreachable):
        await _client(handler).fetch_record(QUERY, Tracing.noop())


async def test_trace_headers_are_injected(tracing, span_exporter):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=ALICE_RECORD)

    token = current_trace_id.set("0af7651916cd43dd8448eb211c80319c")
    try:
        with tracing.span("api.validate_loan") as parent:
            await _client(handler).fetch_record(QUERY, tracing)
    finally:
        current_trace_id.reset(token)

    headers = seen[0].headers
    assert headers[TRACE_ID_HEADER] == "0af7651916cd43dd8448eb211c80319c"
    version, trace_id, span_id, flags = headers["traceparent"].split("-")
    assert trace_id == parent.trace_id

    spans = {s.name: s for s in span_exporter.get_finished_spans()}
    child = spans["http.client.government_bank"]
    assert format(child.context.span_id, "016x") == span_id
    assert child.parent.span_id == spans["api.validate_loan"].context.span_id
    assert child.attributes["http.status_code"] == 200
    assert child.attributes["peer.service"] == "government-loan-bank"


async def test_client_span_marks_errors(tracing, span_exporter):
    from opentelemetry.trace import StatusCode

    client = _client(lambda request: httpx.Response(500))

    with pytest.raises(DownstreamError):
        await client.fetch_record(QUERY, tracing)

    (span,) = span_exporter.get_finished_spans()
    assert span.status.status_code is StatusCode.ERROR
    assert span.attributes["http.status_code"] == 500


def test_empty_base_url_is_rejected():
    with pytest.raises(ValueError):
        RecordServiceClient("  ")
