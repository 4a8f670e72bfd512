"""
Exception handlers mapping DLQ and request errors to JSON responses.
"""
import uuid
from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder

from webhook_dlq.exceptions import DLQError, InvalidStateError, NotFoundError, WebhookValidationError
from webhook_dlq.logging_config import get_logger
from webhook_dlq.sentry_config import capture_exception


log = get_logger(component="api")

DLQ_ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidStateError: status.HTTP_409_CONFLICT,
    WebhookValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def _rid(request: Request) -> str:
    """Request ID set by the logging middleware, or a fresh one."""
    return getattr(request.state, "request_id", None) or uuid.uuid4().hex


def _error_body(request: Request, code: str, message, details=None) -> dict:
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error, "request_id": _rid(request)}


def dlq_exception_handler(request: Request, exc: DLQError):
    """Handles operator-facing DLQ errors (404, 409, 422)."""
    status_code = DLQ_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content=_error_body(request, exc.code, exc.message))


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 401, 403)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, "http_error", exc.detail),
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles request validation errors (422 Unprocessable Entity)."""
    body = _error_body(request, "validation_error", "Invalid input data", jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=422, content=body)


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    log.error("unhandled_exception", path=request.url.path, exc_info=exc)
    capture_exception(exc)
    return JSONResponse(status_code=500, content=_error_body(request, "server_error", "Internal Server Error"))


def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""
    app.add_exception_handler(DLQError, dlq_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    return app
