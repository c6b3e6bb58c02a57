"""
Loan validation flow.

Flow (strictly sequential, stops at the first failure):
1) Session must carry first/last name
2) Build the Record Service query from those names
3) Call the Record Service under a child span (see `client.py`)
4) Record the outcome on the request span
"""

from __future__ import annotations

import logging

from auth.schemas import Session
from core.errors import AuthError, PortalError
from core.tracing import Tracing

from .client import RecordNotFound, RecordServiceClient
from .schemas import LoanQuery, LoanRecord

logger = logging.getLogger(__name__)


class SessionExpired(AuthError):
    default_message = "Session expired. Please login again."


def build_query(session: Session) -> LoanQuery:
    if not session.first_name or not session.last_name:
        raise SessionExpired()
    return LoanQuery(first_name=session.first_name, last_name=session.last_name)


async def validate_loan(
    session: Session,
    client: RecordServiceClient,
    tracing: Tracing,
) -> LoanRecord:
    with tracing.span(
        "api.validate_loan",
        {
            "user.first_name": session.first_name or "",
            "user.last_name": session.last_name or "",
        },
    ) as span:
        logger.info(
            "loan_validation_request first_name=%s last_name=%s",
            session.first_name,
            session.last_name,
        )

        try:
            query = build_query(session)
        except SessionExpired:
            span.error("Session expired")
            logger.warning("loan_validation_rejected reason=session_incomplete")
            raise

        try:
            record = await client.fetch_record(query, tracing)
        except RecordNotFound:
            span.ok()
            logger.warning(
                "loan_record_not_found first_name=%s last_name=%s",
                query.first_name,
                query.last_name,
            )
            raise
        except PortalError as exc:
            span.error(type(exc).__name__)
            raise

        span.set_attributes(
            {
                "loan.status": record.loan_status,
                "loan.amount": record.loan_amount_requested,
            }
        )
        span.ok()
        logger.info(
            "loan_validation_complete loan_status=%s loan_amount=%.2f",
            record.loan_status,
            record.loan_amount_requested,
        )
        return record
