import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront import config

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """Base class for errors rendered as ``{"error": ..., "details"?: ...}``."""

    status_code = 400

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailed(StorefrontError):
    status_code = 400


class NotFound(StorefrontError):
    status_code = 404


class StateConflict(StorefrontError):
    """The order (or cart) is not in a state that allows the requested change."""

    status_code = 400


class ProductUnavailable(StateConflict):
    pass


class InsufficientStock(StateConflict):
    pass


class DuplicateTransactionId(StorefrontError):
    status_code = 409


def error_body(message, details=None):
    body = {"error": message}
    # Field-level detail is only exposed outside production
    if details and not config.is_production():
        body["details"] = details
    return body


async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.details))


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in err["loc"] if part != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=error_body("Invalid request data", details))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def install_error_handlers(app: FastAPI):
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
