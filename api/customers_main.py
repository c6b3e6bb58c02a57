"""
Government loan bank: the Record Service the portal validates against.

Run with `uvicorn customers_main:app --port 8081` from the `api/` directory.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core import config, db
from core.errors import internal_error_json, register_json_error_handlers
from core.observability import setup_logging
from core.tracing import TraceContextMiddleware, Tracing, init_tracing
from customers import router as customers_router
from customers.repository import CustomerRepository, PostgresCustomerRepository

logger = logging.getLogger(__name__)


def create_app(
    *,
    customers: CustomerRepository | None = None,
    tracing: Tracing | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config.log_level(), config.log_format())
        owns_tracing = tracing is None
        app.state.tracing = tracing or init_tracing(config.service_name(config.RECORDS_SERVICE_NAME))

        uses_db = customers is None
        if uses_db:
            await db.connect(app.state.tracing, config.RECORDS_DB_NAME)
            app.state.customers = PostgresCustomerRepository()

        logger.info("record_service_started port=%s", config.listen_port(8081))
        try:
            yield
        finally:
            if uses_db:
                await db.close_pool()
            if owns_tracing:
                app.state.tracing.shutdown()
            logger.info("record_service_stopped")

    app = FastAPI(title="Government Loan Bank API", lifespan=lifespan)
    if customers is not None:
        app.state.customers = customers
    if tracing is not None:
        app.state.tracing = tracing

    app.add_middleware(TraceContextMiddleware, error_response=internal_error_json)
    register_json_error_handlers(app)
    app.include_router(customers_router.router, tags=["customers"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "healthy", "service": "government_loan_bank"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.listen_port(8081))
