"""
CFP Webhook DLQ - reliable delivery of federation webhooks

FastAPI application entry point.
"""
from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

# Import observability modules
from webhook_dlq.config import settings
from webhook_dlq.database import get_db
from webhook_dlq.logging_config import configure_logging
from webhook_dlq.sentry_config import configure_sentry
from webhook_dlq.middleware.logging import LoggingMiddleware
from webhook_dlq.exception_handlers import setup_exception_handlers
from webhook_dlq.routes.metrics import router as metrics_router

# Import route modules
from webhook_dlq.routes.webhooks import router as webhooks_router
from webhook_dlq.routes.monitoring import router as monitoring_router

# Initialize logging first
configure_logging()

# Initialize Sentry (if SENTRY_DSN is set)
configure_sentry()

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Webhook retry queue and dead letter management for CFP federation",
)

app.add_middleware(LoggingMiddleware)

setup_exception_handlers(app)

# Include metrics endpoint FIRST (so it's always available)
app.include_router(metrics_router)

# Include admin routes
app.include_router(webhooks_router)
app.include_router(monitoring_router)


@app.get("/")
async def root():
    """Liveness endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    """Health check including the queue database."""
    await db.execute(text("SELECT 1"))
    return {
        "status": "healthy",
        "database": "connected"
    }
