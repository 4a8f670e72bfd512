"""
Logging middleware for request/response logging.

Logs all HTTP requests with timing, tags them with a request id and
records request metrics.
"""
import time
import uuid
import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from webhook_dlq.routes.metrics import track_request

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests with timing and context.
    
    Adds: request_id, route, method, status_code, duration_ms to every log.
    The request id is bound to structlog contextvars, so DLQ events logged
    while handling the request carry it too.
    """
    
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        
        request_logger = logger.bind(
            route=request.url.path,
            method=request.method,
            client=request.client.host if request.client else None,
        )
        
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            request_logger.error(
                "request_failed",
                status_code=500,
                duration_ms=round(duration_ms, 2),
                error=str(e)
            )
            raise
        
        duration = time.time() - start_time
        
        # Label by route template so entry ids don't explode cardinality
        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")
        track_request(request.method, endpoint, response.status_code, duration)
        
        request_logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2)
        )
        
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
