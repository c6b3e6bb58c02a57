"""
Gateway dependencies.
"""

from __future__ import annotations

from fastapi import Request

from core import config

from .client import RecordServiceClient


def build_record_client() -> RecordServiceClient:
    return RecordServiceClient(config.gov_bank_url(), timeout_s=config.gov_bank_timeout_s())


def get_record_client(request: Request) -> RecordServiceClient:
    client = getattr(request.app.state, "record_client", None)
    if client is None:
        client = build_record_client()
        request.app.state.record_client = client
    return client
