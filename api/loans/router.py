"""
Validation Gateway endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from auth import dependencies as auth_dependencies
from auth.schemas import Session
from core.tracing import Tracing, get_tracing

from . import render, service
from .client import RecordServiceClient
from .dependencies import get_record_client

router = APIRouter(prefix="/api")


@router.get("/validate-loan", response_class=HTMLResponse)
async def validate_loan(
    session: Session = Depends(auth_dependencies.require_session),
    client: RecordServiceClient = Depends(get_record_client),
    tracing: Tracing = Depends(get_tracing),
) -> HTMLResponse:
    """
    Look up the logged-in user's loan record and render it.

    Not-found, unreachable, and malformed-response outcomes are rendered by
    the error handlers (200, 503, 500).
    """
    record = await service.validate_loan(session, client, tracing)
    return HTMLResponse(render.render_record(record))
