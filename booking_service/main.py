import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_package,  # noqa: F401
    models_zoho,  # noqa: F401
)
from .database import Base, engine
from .domain.bookings import router as bookings_router
from .domain.invoicing.router import router as invoices_router
from .domain.packages import router as packages_router
from .exceptions import BookingServiceError, SlotExhausted

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Package Booking API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(BookingServiceError)
async def booking_service_error_handler(request: Request, exc: BookingServiceError):
    """Map domain errors to HTTP responses"""
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"⚠️ {request.method} {request.url.path}: {exc.message}")
    content = {"detail": exc.message, "error": type(exc).__name__}
    if exc.details:
        content.update(exc.details)
    if isinstance(exc, SlotExhausted):
        content["available_capacity"] = exc.available
    return JSONResponse(status_code=exc.status_code, content=content)


app.include_router(bookings_router)
app.include_router(packages_router)
app.include_router(invoices_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
