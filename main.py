from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import uvicorn
import logging
from dotenv import load_dotenv

# Load environment variables from .env file FIRST, before any other imports
load_dotenv()

# Set SQLAlchemy engine logging to WARNING level to reduce query log noise
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Import API routers
from app.api.endpoints import appointments, invoices, reminders, directory, dashboard

from app.core.error_handling import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)

# Import monitoring and caching
from app.core.monitoring import init_sentry
from app.core.cache import cache_manager
from app.services.reminder_service import ReminderScheduler
from config import settings
from database import AsyncSessionLocal, init_models

logger = logging.getLogger(__name__)


def get_cors_origins():
    """Get CORS origins from settings plus local development defaults"""
    origins = [origin.strip() for origin in settings.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]
    default_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    return list(dict.fromkeys(origins + default_origins))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info(f"{settings.APP_NAME} starting up...")

    if init_sentry():
        logger.info("Sentry monitoring initialized")

    await cache_manager.connect()
    if cache_manager.enabled:
        logger.info("Redis cache connected")

    await init_models()

    scheduler = None
    if settings.REMINDER_POLLING_ENABLED:
        scheduler = ReminderScheduler(AsyncSessionLocal)
        scheduler.start()
    app.state.reminder_scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop()
    await cache_manager.disconnect()
    logger.info(f"{settings.APP_NAME} shutting down...")


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Hospital front desk: appointments, billing and reminders",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"],
    allow_headers=["*"],
    max_age=3600,  # Cache preflight requests for 1 hour
)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# API Version 1 - All endpoints under /api/v1
app.include_router(appointments.router, prefix=settings.API_V1_PREFIX)
app.include_router(invoices.router, prefix=settings.API_V1_PREFIX)
app.include_router(reminders.router, prefix=settings.API_V1_PREFIX)
app.include_router(directory.router, prefix=settings.API_V1_PREFIX)
app.include_router(dashboard.router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.get("/health")
async def health_check_simple():
    """Simple health check endpoint for monitoring"""
    return {"status": "healthy"}


@app.get("/api/health")
async def health_check():
    """Detailed health check endpoint"""
    scheduler = getattr(app.state, "reminder_scheduler", None)
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": "connected" if cache_manager.enabled else "disabled",
        "reminder_scheduler": "running" if scheduler is not None and scheduler.running else "stopped",
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
