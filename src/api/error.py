"""API error rendering

Use-case errors reach the client as ``{"error": {"code", "message"}}`` with
an HTTP status derived from the error code.
"""

import logging
import re
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.libs.result import Error

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."

STATUS_BY_CODE = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "AUTH_ERROR": status.HTTP_401_UNAUTHORIZED,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "PERSISTENCE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "UPSTREAM_GATEWAY_ERROR": status.HTTP_502_BAD_GATEWAY,
    "GENERATE_PROFORMA_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "INTERNAL_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

SECRET_KEY_PATTERN = re.compile(r"\bsk_(?:live|test)_[A-Za-z0-9]+\b")
GATEWAY_ID_PATTERN = re.compile(r"\b(?:cus|sub|acct|pi|pm|card|price|prod|cs)_[A-Za-z0-9]+\b")


class ClientError(Exception):
    """Raised by routes to return a use-case error to the caller"""

    def __init__(self, error: Error, status_code: Optional[int] = None):
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code or STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST)


def redact(message: str) -> str:
    """Mask secret keys and gateway object ids in a message"""
    message = SECRET_KEY_PATTERN.sub("sk_***", message)
    return GATEWAY_ID_PATTERN.sub(lambda m: m.group(0).split("_", 1)[0] + "_***", message)


def public_message(message: str, status_code: int, production: bool) -> str:
    if production and status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return GENERIC_ERROR_MESSAGE
    return redact(message)


def error_response(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def register_exception_handlers(app: FastAPI, production: bool = False) -> None:
    """Install the handlers that render errors in the service's envelope"""

    @app.exception_handler(ClientError)
    async def client_error_handler(request: Request, exc: ClientError):
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(
                f"{request.method} {request.url.path} failed: {exc.error.code} "
                f"{redact(exc.error.message)} ({redact(exc.error.reason or '')})"
            )
        return error_response(
            exc.error.code,
            public_message(exc.error.message, exc.status_code, production),
            exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', []))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return error_response(
            "VALIDATION_ERROR",
            details or "Invalid request parameters",
            status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {redact(str(exc))}")
        return error_response(
            "INTERNAL_ERROR",
            GENERIC_ERROR_MESSAGE if production else redact(str(exc)) or GENERIC_ERROR_MESSAGE,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
