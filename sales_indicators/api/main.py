"""
Sales Indicators API - Main Application

Configures the FastAPI application with the report routes, middleware
and exception handlers.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from sales_indicators.config.settings import settings
from sales_indicators.api.routers import reports, health
from sales_indicators.api.middlewares.logging_middleware import RequestLoggingMiddleware
from sales_indicators.api.middlewares.error_handler import add_exception_handlers
from sales_indicators.db.session import reset_engine

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage the lifecycle of the application

    The database engine is created lazily by the first report query and
    disposed on shutdown.
    """
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}")
    yield
    reset_engine()
    logger.info("Stopped, database connections closed")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Sales reports for the commercial indicators dashboard",
    version=settings.APP_VERSION,
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# Add exception handlers
add_exception_handlers(app)

# Include routers
app.include_router(health.router, prefix=settings.API_PREFIX, tags=["Health"])
app.include_router(reports.router, prefix=settings.API_PREFIX, tags=["Reports"])


@app.get(settings.API_PREFIX, tags=["Root"])
def root():
    """API root endpoint"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database_type": "SQL Server",
        "docs_url": f"{settings.API_PREFIX}/docs",
    }
