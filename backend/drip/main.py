"""FastAPI application entry point"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from drip.core.config import settings
from drip.core.logging import setup_logging
from drip.core.otel import initialize_otel, setup_otel_logging, instrument_fastapi, instrument_sqlalchemy
from drip.db.session import engine, init_db
from drip.db.redis import get_redis_client
from drip.services.email_service import validate_email_config

# Import routers
from drip.api import admin, cron, email, monitoring, unsubscribe

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    if initialize_otel():
        if setup_otel_logging():
            logger.info(f"OpenTelemetry fully initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            logger.warning("OpenTelemetry metrics/traces initialized but logging setup failed")
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    # Redis only backs rate limiting, which fails open
    try:
        get_redis_client().ping()
        logger.info("Redis connection successful")
    except Exception as e:
        logger.warning(f"Redis connection failed, unsubscribe rate limiting disabled: {e}")

    instrument_sqlalchemy(engine)

    email_ok, email_error = validate_email_config()
    if not email_ok:
        logger.warning(f"Email delivery not configured: {email_error}")

    if not settings.CRON_SECRET:
        logger.warning("CRON_SECRET is not set - cron endpoints will answer 503")

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Drip Campaigns",
    description="Scheduled lifecycle email campaigns (welcome, abandoned resume, re-engagement)",
    version="0.4.0",
    lifespan=lifespan
)

instrument_fastapi(app)

# CORS middleware
allowed_origins = [settings.FRONTEND_URL]
if settings.ENVIRONMENT == "development":
    allowed_origins.extend([
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(cron.router)
app.include_router(email.router)
app.include_router(unsubscribe.router)
app.include_router(admin.router)
app.include_router(monitoring.router)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )
