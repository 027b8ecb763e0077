"""
Seat Sync API - Main Application Entry Point

Serves a live seat map per trip:
- Local seat inventory reconciled against a remote store's change feed
- Block / release commands with per-seat in-flight guards
- Structured logging with request correlation
- Prometheus metrics for commands, feed health and reloads
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seatsync.core.config import get_settings
from seatsync.core.logging import setup_logging, get_logger
from seatsync.core.metrics import metrics_endpoint
from seatsync.api.router import api_router
from seatsync.api.middleware import RequestLoggingMiddleware
from seatsync.services.session_registry import SessionRegistry, close_session_registry, get_session_registry
from seatsync.services.store_factory import close_remote_store, get_remote_store

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        remote_store=settings.REMOTE_STORE,
    )

    get_remote_store()
    get_session_registry()
    logger.info("remote_store_ready", backend=settings.REMOTE_STORE)

    yield

    # Cleanup: sessions first so their feeds unsubscribe before the store closes
    await close_session_registry()
    await close_remote_store()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Real-time seat inventory synchronization API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check(registry: SessionRegistry = Depends(get_session_registry)):
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "remote_store": settings.REMOTE_STORE,
        "open_sessions": len(registry),
    }


@app.get("/metrics", tags=["Health"])
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
