from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
import logging
import time
import uuid

from .config import settings
from .database import create_tables
from .utils.logging_config import setup_logging, set_request_context, clear_request_context, get_logger

from .routers import sync, webhooks

logger = logging.getLogger(__name__)
request_logger = get_logger("channex_sync.requests")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(settings.log_level, json_format=settings.log_json)

    logger.info("🚀 Starting channex-sync...")
    logger.info(f"📍 Environment: {settings.environment}")
    logger.info(f"🔗 Channex: {settings.channex_base_url}")
    logger.info(f"🗄️ Event store: {settings.event_store_backend}")

    create_tables()

    yield

    logger.info("channex-sync stopped")


# Create FastAPI app
app = FastAPI(
    title="Channex Sync",
    description="Mirrors properties, room types, rate plans, taxes and ARI into Channex and stores Channex webhook events",
    version="1.0.0",
    lifespan=lifespan
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


app.add_middleware(SecurityHeadersMiddleware)


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_context(request_id)
        start_time = time.time()
        try:
            response = await call_next(request)
            request_logger.api_request(
                request.method,
                request.url.path,
                response.status_code,
                duration_ms=round((time.time() - start_time) * 1000, 2),
            )
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIdMiddleware)


# Include routers
app.include_router(sync.router)
app.include_router(webhooks.router)


@app.get("/health")
@app.get("/health/")
async def health_check():
    return {"status": "healthy"}
