"""SocialPulse Analytics - FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config import get_settings
from database import build_engine, build_session_factory, create_tables
from logging_config import setup_logging
from middleware.rate_limit import limiter
from routers import analytics_router
from services.container import build_services
from services.scheduler import start_scheduler, stop_scheduler

settings = get_settings()
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - build services and start the scheduler on startup."""
    engine = build_engine(settings.database_url)
    await create_tables(engine)

    app.state.session_factory = build_session_factory(engine)
    app.state.services = build_services(settings, app.state.session_factory)

    if settings.scheduler_enabled:
        start_scheduler(app.state.services, settings)

    yield

    # Shutdown: stop scheduler and dispose of the connection pool
    stop_scheduler()
    await engine.dispose()


app = FastAPI(
    title="SocialPulse Analytics API",
    description="Social account analytics collection, smart sync and posting-time hotspots",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(analytics_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "socialpulse-analytics"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "SocialPulse Analytics API",
        "version": "0.1.0",
        "docs": "/docs",
    }
