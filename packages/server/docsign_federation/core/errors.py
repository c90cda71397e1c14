"""
Federation error taxonomy and the handlers that render it.

Every partner-facing failure is returned as `{"message": ..., "statusCode": ...}`.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

log = structlog.get_logger()


class FederationError(Exception):
    status_code = 500
    default_message = "An error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unconfigured(FederationError):
    """No partner secret is configured; operator must fix the environment."""
    status_code = 500
    default_message = "External authentication is not configured"


class Unauthorized(FederationError):
    status_code = 401
    default_message = "Unauthorized"


class InvalidSecret(Unauthorized):
    default_message = "Invalid external secret"


class RequestValidationFailed(FederationError):
    status_code = 400
    default_message = "Invalid request"


class TokenInvalidOrExpired(FederationError):
    status_code = 401
    default_message = "Invalid or expired token"


class InternalError(FederationError):
    status_code = 500


class ProvisioningConflict(Exception):
    """Another caller created the same tenant first. Recovered internally."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Organisation '{slug}' was created concurrently")


def redact(message: str, *secrets: str) -> str:
    """Strip configured secrets out of a message before it leaves the service."""
    for secret in secrets:
        if secret:
            message = message.replace(secret, "[redacted]")
    return message


def error_body(message: str, status_code: int) -> dict:
    return {"message": message, "statusCode": status_code}


async def _federation_error_handler(request: Request, exc: FederationError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.status_code),
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.info("request.invalid_body", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(status_code=400, content=error_body("Invalid request body", 400))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FederationError, _federation_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
