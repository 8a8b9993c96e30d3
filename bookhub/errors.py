import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BookhubError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(BookhubError):
    status_code = 400
    message = "Invalid request"


class NotFound(BookhubError):
    status_code = 404
    message = "Not found"


class Unauthorized(BookhubError):
    status_code = 401
    message = "Invalid or missing token"


class InvalidCredentials(Unauthorized):
    message = "Invalid credentials"


class DuplicateEmail(BookhubError):
    status_code = 400
    message = "Email already registered"


class EmptyCart(BookhubError):
    status_code = 400
    message = "Cart is empty"


class GatewayError(BookhubError):
    status_code = 500
    message = "Payment provider error"


class StoreError(BookhubError):
    status_code = 500
    message = "Database error"


class InvalidSignature(BookhubError):
    status_code = 400
    message = "Invalid signature"


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


async def bookhub_error_handler(request: Request, exc: BookhubError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = ValidationError.message
    return _error_response(ValidationError.status_code, message)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "Server error")


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(BookhubError, bookhub_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
