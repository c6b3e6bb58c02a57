"""
Error taxonomy and the handler boundary that renders it.

Services raise `PortalError` subclasses; nothing above the route handlers
sees them because `register_error_handlers` converts each one into a
response with the matching status. Messages are written for end users and
never carry internal error text.
"""

from __future__ import annotations

import html
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class PortalError(RuntimeError):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    css_class: str = "error"
    default_message: str = "Something went wrong. Please try again later."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input."


class AuthError(PortalError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Please login to continue"


class ConflictError(PortalError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already exists."


class DomainNotFound(PortalError):
    # A business outcome, rendered as an informational 200.
    status_code = status.HTTP_200_OK
    css_class = "warning"
    default_message = "No matching record."


class DependencyError(PortalError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "A required service is unavailable. Please try again later."


class ContractViolation(PortalError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Received an invalid response from a required service."


def render_fragment(message: str, *, css_class: str, status_code: int) -> HTMLResponse:
    body = f'<div class="{html.escape(css_class)}">{html.escape(message)}</div>'
    return HTMLResponse(content=body, status_code=status_code)


def internal_error_fragment() -> HTMLResponse:
    return render_fragment(
        PortalError.default_message,
        css_class="error",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def internal_error_json() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    """
    HTML-fragment rendering for the portal.
    """

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError) -> HTMLResponse:
        log = logger.info if exc.status_code < 500 else logger.warning
        log(
            "request_failed path=%s error=%s status=%s",
            request.url.path,
            type(exc).__name__,
            exc.status_code,
        )
        return render_fragment(exc.message, css_class=exc.css_class, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> HTMLResponse:
        logger.info("request_invalid path=%s errors=%s", request.url.path, len(exc.errors()))
        return render_fragment(
            ValidationError.default_message,
            css_class="error",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> HTMLResponse:
        logger.exception("request_crashed path=%s", request.url.path)
        return internal_error_fragment()


def register_json_error_handlers(app: FastAPI) -> None:
    """
    `{"error": "..."}` bodies for the Record Service contract.
    """

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
        content = exc.detail if isinstance(exc.detail, dict) else {"error": str(exc.detail)}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted({".".join(str(p) for p in e["loc"][1:]) for e in exc.errors()})
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid input: " + ", ".join(f for f in fields if f)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_crashed path=%s", request.url.path)
        return internal_error_json()
