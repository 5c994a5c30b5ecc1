import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base error carrying the HTTP status and a machine-readable code."""

    status_code = 500
    code = "INTERNAL"
    message = "Internal server error"

    def __init__(self, message: str = None, code: str = None):
        self.message = message or self.message
        if code:
            self.code = code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid request"


class InvalidCode(AppError):
    status_code = 400
    code = "INVALID_CODE"
    message = "Invalid OTP"


class Expired(AppError):
    status_code = 400
    code = "EXPIRED"
    message = "OTP has expired"


class SignatureInvalid(AppError):
    status_code = 400
    code = "SIGNATURE_INVALID"
    message = "Invalid payment signature"


class Unauthorized(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Not found"


class Conflict(AppError):
    status_code = 409
    code = "CONFLICT"
    message = "Conflict"


class RateLimited(AppError):
    status_code = 429
    code = "RATE_LIMITED"
    message = "Too many requests"

    def __init__(self, message: str = None, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after


class Internal(AppError):
    pass


class EmailDeliveryError(AppError):
    code = "EMAIL_DELIVERY_FAILED"
    message = "Failed to send verification email"


class ReconciliationError(AppError):
    """Payment captured but the enrollment ledger could not be updated."""

    code = "RECONCILIATION_GAP"
    message = "Payment successful but enrollment update failed. Please contact support."


class GatewayUnavailable(AppError):
    status_code = 503
    code = "GATEWAY_UNAVAILABLE"
    message = "Payment gateway is unavailable. Please try again."


def _error_response(status_code: int, message: str, code: str, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "code": code},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(AppError)
    async def app_error_handler(_request: Request, exc: AppError):
        headers = None
        if isinstance(exc, RateLimited):
            headers = {"Retry-After": str(exc.retry_after)}
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.code, exc.message)
        return _error_response(exc.status_code, exc.message, exc.code, headers)

    @app.exception_handler(HTTPException)
    async def http_error_handler(_request: Request, exc: HTTPException):
        return _error_response(exc.status_code, str(exc.detail), "HTTP_ERROR", exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ())[1:])
            message = f"{field}: {first.get('msg')}" if field else first.get("msg")
        else:
            message = "Invalid request"
        return _error_response(400, message, ValidationError.code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        error = Internal()
        return _error_response(error.status_code, error.message, error.code)
