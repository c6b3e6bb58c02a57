"""Shared fixtures: in-memory stores, recording tracer, both apps wired together."""

import asyncio
import os
from datetime import timedelta

# Cheap hashing and no OTLP exporter for the whole suite.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("TRACING_ENABLED", "0")

import httpx
import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

import customers_main
import main
from auth.repository import MemoryUserRepository
from auth.sessions import SessionStore
from core.tracing import Tracing
from customers.repository import MemoryCustomerRepository
from customers.schemas import CustomerInput
from helpers import ALICE_RECORD, login, register
from loans.client import RecordServiceClient

RECORDS_BASE_URL = "http://records.test"


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider
    provider.shutdown()


@pytest.fixture
def tracing(tracer_provider):
    return Tracing(tracer_provider, service_name="loan-validator-portal")


@pytest.fixture
def records_tracing(tracer_provider):
    return Tracing(tracer_provider, service_name="government-loan-bank")


@pytest.fixture
def customer_repo():
    repo = MemoryCustomerRepository()
    asyncio.run(repo.create_if_absent(CustomerInput(**ALICE_RECORD)))
    return repo


@pytest.fixture
def records_app(customer_repo, records_tracing):
    return customers_main.create_app(customers=customer_repo, tracing=records_tracing)


@pytest.fixture
def record_client(records_app):
    return RecordServiceClient(
        RECORDS_BASE_URL,
        timeout_s=2.0,
        transport=httpx.ASGITransport(app=records_app),
    )


@pytest.fixture
def users():
    return MemoryUserRepository()


@pytest.fixture
def sessions():
    return SessionStore(ttl=timedelta(minutes=30))


@pytest.fixture
def portal_app(users, sessions, record_client, tracing):
    return main.create_app(
        users=users,
        sessions=sessions,
        record_client=record_client,
        tracing=tracing,
    )


@pytest.fixture
def client(portal_app):
    with TestClient(portal_app) as test_client:
        yield test_client


@pytest.fixture
def logged_in_client(client):
    assert register(client).status_code == 200
    assert login(client).status_code == 200
    return client
