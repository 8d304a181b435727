"""
FastAPI application entry point for the marketplace API.
"""
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from vendorhub.api.routes import admin, appointments, consumers, listings, reviews, saved, threads
from vendorhub.api.middleware.error_handler import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    database_unavailable_handler,
    unhandled_exception_handler,
)
from vendorhub.jobs.scheduler import get_scheduler, register_default_jobs
from vendorhub.lib.logging import get_logger, set_correlation_id
from vendorhub.lib.metrics import get_metrics_collector
from vendorhub.lib.settings import settings

logger = get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation_id to all requests for distributed tracing.
    Accepts X-Correlation-ID from incoming requests or generates a new one.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))

        # Request state for handlers, context var for log records
        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)

        logger.info(
            "Incoming request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id

            logger.info("Response sent", extra={"status_code": response.status_code})
            return response
        finally:
            set_correlation_id(None)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup/shutdown events.
    """
    logger.info(f"{settings.app_name} starting up...")

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = get_scheduler()
        register_default_jobs(scheduler)
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
    logger.info(f"{settings.app_name} shutting down...")


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Wedding vendor and rental marketplace: listings, leads, reviews",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)


# Register exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(OperationalError, database_unavailable_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


# Include routers
app.include_router(listings.router)
app.include_router(reviews.router)
app.include_router(threads.router)
app.include_router(saved.router)
app.include_router(consumers.router)
app.include_router(appointments.router)
app.include_router(admin.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint():
    """
    Prometheus-compatible metrics endpoint.

    Metrics exposed:
    - thread_messages_sent_total: Messages appended to threads, by automated flag
    - thread_transitions_total: Lead status changes, by from/to status
    - reviews_submitted_total: Reviews created
    - billing_checkout_sessions_total: Checkout attempts, by outcome
    - billing_webhook_events_total: Webhook deliveries, by event type and outcome
    """
    return PlainTextResponse(
        content=get_metrics_collector().export_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
