"""
Loan validator portal: Session Authority + Validation Gateway.

Run with `uvicorn main:app` from the `api/` directory.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth import router as auth_router
from auth.repository import PostgresUserRepository, UserRepository
from auth.sessions import SessionStore
from core import config, db
from core.errors import register_error_handlers
from core.observability import setup_logging
from core.tracing import TraceContextMiddleware, Tracing, init_tracing
from loans import router as loans_router
from loans.client import RecordServiceClient
from loans.dependencies import build_record_client

logger = logging.getLogger(__name__)


def create_app(
    *,
    users: UserRepository | None = None,
    sessions: SessionStore | None = None,
    record_client: RecordServiceClient | None = None,
    tracing: Tracing | None = None,
) -> FastAPI:
    """
    Components passed in are used as-is; anything omitted is built from the
    environment at startup (Postgres users, in-process sessions, OTLP tracing).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config.log_level(), config.log_format())
        owns_tracing = tracing is None
        app.state.tracing = tracing or init_tracing(config.service_name(config.PORTAL_SERVICE_NAME))

        uses_db = users is None
        if uses_db:
            await db.connect(app.state.tracing, config.PORTAL_DB_NAME)
            app.state.users = PostgresUserRepository()
        if sessions is None:
            app.state.sessions = SessionStore(ttl=timedelta(minutes=config.session_ttl_minutes()))
        if record_client is None:
            app.state.record_client = build_record_client()

        logger.info("portal_started port=%s downstream=%s", config.listen_port(8080), config.gov_bank_url())
        try:
            yield
        finally:
            if uses_db:
                await db.close_pool()
            if owns_tracing:
                app.state.tracing.shutdown()
            logger.info("portal_stopped")

    app = FastAPI(title="Loan Validator Portal", lifespan=lifespan)
    if users is not None:
        app.state.users = users
    if sessions is not None:
        app.state.sessions = sessions
    if record_client is not None:
        app.state.record_client = record_client
    if tracing is not None:
        app.state.tracing = tracing

    app.add_middleware(TraceContextMiddleware)
    # The browser UI calls this API with the session cookie.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(auth_router.router, tags=["auth"])
    app.include_router(loans_router.router, tags=["loans"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/")
    def root() -> dict:
        return {"message": "loan validator portal"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.listen_port(8080))
