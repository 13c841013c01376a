"""
Invoicer API - Main Application

SECURITY FEATURES:
- Conditional API docs (disabled in production by default)
- Structured logging without secrets or connection strings
- Generic error bodies for server faults
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from invoicer import __version__
from invoicer.api.router import api_router
from invoicer.config import settings
from invoicer.database import init_db
from invoicer.exceptions import register_exception_handlers
from invoicer.middleware import CorrelationIdMiddleware, CorrelationLogFilter, ServerTimingMiddleware
# Import all models to register them with SQLAlchemy metadata before init_db()
from invoicer.models import Invoice, InvoiceCounter  # noqa: F401

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


def configure_logging() -> None:
    """Configure root logging once, stamping request ids on every record."""
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format=LOG_FORMAT,
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, CorrelationLogFilter) for f in handler.filters):
            handler.addFilter(CorrelationLogFilter())


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Invoicer API...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    if not settings.APP_PASSWORD:
        logger.warning("APP_PASSWORD is not set - every API request will be rejected")
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        # SECURITY: Don't log full exception details which may contain credentials
        logger.error(f"Database initialization failed: {type(e).__name__}")
        logger.warning("App starting without database - API calls will fail until it is reachable")
    yield
    logger.info("Shutting down Invoicer API...")


# SECURITY: Conditionally enable docs based on settings
docs_url = "/docs" if settings.DOCS_ENABLED else None
redoc_url = "/redoc" if settings.DOCS_ENABLED else None

app = FastAPI(
    title="Invoicer API",
    description="Invoice management with sequential numbering and lifecycle tracking",
    version=__version__,
    docs_url=docs_url,
    redoc_url=redoc_url,
    lifespan=lifespan,
)

register_exception_handlers(app)

allowed_origins = [
    settings.FRONTEND_URL,
    "http://localhost:5173",  # Vite dev server
    "http://localhost:3000",
]

app.add_middleware(ServerTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Correlation-ID", "Content-Disposition"],
)
# Added last so it runs outermost and ids are bound for everything inside
app.add_middleware(CorrelationIdMiddleware)

app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """Root endpoint - API info."""
    response = {
        "name": "Invoicer API",
        "version": __version__,
        "health": "/health",
    }
    if settings.DOCS_ENABLED:
        response["docs"] = "/docs"
    return response


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.ENVIRONMENT,
    }


# For running with uvicorn directly (development only)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "invoicer.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
