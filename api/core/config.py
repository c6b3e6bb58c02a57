"""
Environment-driven settings.

Every getter reads the environment on each call so tests can use
`monkeypatch.setenv` without reloading modules. Empty or malformed values
fall back to the default.
"""

from __future__ import annotations

import os


def env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    return raw not in {"0", "false", "False", "no"}


# Portal / Record Service

PORTAL_SERVICE_NAME = "loan-validator-portal"
RECORDS_SERVICE_NAME = "government-loan-bank"
PORTAL_DB_NAME = "loan_validator_db"
RECORDS_DB_NAME = "government_loan_db"


def listen_port(default: int) -> int:
    return _env_int("PORT", default)


def service_name(default: str) -> str:
    return env_str("SERVICE_NAME", default)


def environment() -> str:
    return env_str("ENV", "development")


def cors_origins() -> list[str]:
    raw = env_str("CORS_ORIGINS", "http://localhost:8080")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


# Database

def db_host() -> str:
    return env_str("DB_HOST", "localhost")


def db_port() -> int:
    return _env_int("DB_PORT", 5432)


def db_user() -> str:
    return env_str("DB_USER", "postgres")


def db_password() -> str:
    return env_str("DB_PASSWORD", "postgres")


def db_name(default: str) -> str:
    return env_str("DB_NAME", default)


# Downstream Record Service

def gov_bank_url() -> str:
    return env_str("GOV_BANK_URL", "http://localhost:8081").rstrip("/")


def gov_bank_timeout_s() -> float:
    return _env_float("GOV_BANK_TIMEOUT_S", 10.0)


# Sessions

def session_cookie_name() -> str:
    return env_str("SESSION_COOKIE_NAME", "loan_validator_session")


def session_ttl_minutes() -> int:
    ttl = _env_int("SESSION_TTL_MINUTES", 720)
    return ttl if ttl > 0 else 720


def session_cookie_secure() -> bool:
    return _env_bool("SESSION_COOKIE_SECURE", False)


# Observability

def tracing_enabled() -> bool:
    return _env_bool("TRACING_ENABLED", True)


def otlp_endpoint() -> str:
    return env_str("OTEL_EXPORTER_OTLP_ENDPOINT", "localhost:4317")


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO")


def log_format() -> str:
    return env_str("LOG_FORMAT", "text").lower()
