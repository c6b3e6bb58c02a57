"""
Record Service HTTP client.

Used endpoint:
- GET /api/customer?first_name=...&last_name=...  -> 200 record | 404 | other

Every outcome of the call maps to one result:
- transport failure or timeout   -> DownstreamUnreachable
- 404                            -> RecordNotFound
- any other non-200              -> DownstreamError
- 200 with an undecodable body   -> DecodeFailure
- 200 with a valid body          -> LoanRecord

One attempt per call; there is no retry.
"""

from __future__ import annotations

import asyncio
import logging

import httpx
import pydantic
from opentelemetry.trace import SpanKind

from core.errors import ContractViolation, DependencyError, DomainNotFound
from core.tracing import Tracing

from .schemas import LoanQuery, LoanRecord

logger = logging.getLogger(__name__)

CUSTOMER_PATH = "/api/customer"
PEER_SERVICE = "government-loan-bank"


class DownstreamUnreachable(DependencyError):
    default_message = "Cannot reach the government portal to fetch details. Please try again later."


class DownstreamError(DependencyError):
    default_message = "Error fetching data from government portal."


class RecordNotFound(DomainNotFound):
    default_message = "User details not found in the government portal database."


class DecodeFailure(ContractViolation):
    default_message = "Received an unreadable response from the government portal."


def _normalize_base_url(base_url: str) -> str:
    base_url = (base_url or "").strip()
    if not base_url:
        raise ValueError("GOV_BANK_URL is empty.")
    return base_url.rstrip("/")


class RecordServiceClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = _normalize_base_url(base_url)
        self.timeout_s = timeout_s
        self._transport = transport

    async def _get(self, query: LoanQuery, headers: dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            transport=self._transport,
        ) as client:
            return await client.get(CUSTOMER_PATH, params=query.as_params(), headers=headers)

    async def fetch_record(self, query: LoanQuery, tracing: Tracing) -> LoanRecord:
        url = f"{self.base_url}{CUSTOMER_PATH}"
        with tracing.span(
            "http.client.government_bank",
            {"http.url": url, "http.method": "GET", "peer.service": PEER_SERVICE},
            kind=SpanKind.CLIENT,
        ) as span:
            headers = tracing.inject({})

            try:
                # httpx timeouts are per phase; this bounds the whole exchange.
                resp = await asyncio.wait_for(self._get(query, headers), timeout=self.timeout_s)
            except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
                span.error("Timed out", exc)
                logger.error("record_service_timeout url=%s timeout_s=%s", self.base_url, self.timeout_s)
                raise DownstreamUnreachable() from exc
            except httpx.DecodingError as exc:
                # Body arrived but its Content-Encoding is corrupt.
                span.error("Failed to decode response body", exc)
                logger.error("record_service_bad_encoding error=%s", type(exc).__name__)
                raise DecodeFailure() from exc
            except (httpx.RequestError, httpx.InvalidURL) as exc:
                span.error("Connection failed", exc)
                logger.error("record_service_unreachable url=%s error=%s", self.base_url, type(exc).__name__)
                raise DownstreamUnreachable() from exc

            span.set_attribute("http.status_code", resp.status_code)

            if resp.status_code == 404:
                span.ok()
                raise RecordNotFound()

            if resp.status_code != 200:
                span.error(f"Unexpected status code: {resp.status_code}")
                logger.error("record_service_error status_code=%s", resp.status_code)
                raise DownstreamError()

            try:
                record = LoanRecord.model_validate_json(resp.content)
            except pydantic.ValidationError as exc:
                span.error("Failed to parse response", exc)
                logger.error("record_service_bad_payload errors=%s", exc.error_count())
                raise DecodeFailure() from exc

            span.ok()
            return record
