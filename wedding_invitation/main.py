"""
FastAPI application entry point.
Main application instance with middleware, route configuration and the gallery purge task.
"""
from fastapi import FastAPI, Request, status, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from contextlib import asynccontextmanager
from typing import Optional
import logging
import asyncio
import os

from wedding_invitation.config import settings
from wedding_invitation.database import get_db, init_db, close_db
from wedding_invitation.services.gallery import purge_loop
from wedding_invitation.services.storage import validate_storage_config
from wedding_invitation.routes import (
    admin,
    admin_gallery,
    admin_guestbook,
    contacts,
    gallery,
    guestbook,
    invitation,
    upload,
)
from wedding_invitation.utils.rate_limit import limiter

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Initialize the database and start the gallery purge task; undo both on shutdown.
    Non-blocking: app will start even if database connection fails.
    """
    logger.info(f"CORS allowed origins: {settings.CORS_ORIGINS}")

    try:
        await init_db()
        logger.info("Database connection established successfully")
    except Exception as e:
        logger.error(
            f"Failed to initialize database on startup: {str(e)}\n"
            f"The application will continue to run, but database-dependent endpoints will fail.\n"
            f"Please check your DATABASE_URL configuration."
        )

    if not validate_storage_config():
        logger.warning(f"Uploads will fail until {settings.UPLOAD_DIR} is writable")

    purge_task: Optional[asyncio.Task] = None
    if settings.CLEANUP_INTERVAL_SECONDS > 0:
        purge_task = asyncio.create_task(purge_loop(settings.CLEANUP_INTERVAL_SECONDS))
    app.state.purge_task = purge_task

    yield

    if purge_task is not None:
        purge_task.cancel()
        try:
            await purge_task
        except asyncio.CancelledError:
            pass
        app.state.purge_task = None

    try:
        await close_db()
    except Exception as e:
        logger.warning(f"Error during database shutdown: {str(e)}")


# Create FastAPI application instance
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan,
)

app.state.limiter = limiter

# The admin session is a cookie, so origins must be listed explicitly
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its response status."""
    method = request.method
    path = request.url.path
    logger.debug(f"Incoming {method} request to {path} from origin: {request.headers.get('origin', 'No origin header')}")

    try:
        response = await call_next(request)
        logger.info(f"Response status: {response.status_code} for {method} {path}")
        return response
    except Exception as e:
        logger.error(
            f"Error processing {method} {path}: {str(e)}\n"
            f"  Error type: {type(e).__name__}",
            exc_info=True
        )
        raise


# Include routers
app.include_router(gallery.router, prefix="/api", tags=["gallery"])
app.include_router(guestbook.router, prefix="/api", tags=["guestbook"])
app.include_router(contacts.router, prefix="/api", tags=["contacts"])
app.include_router(invitation.router, prefix="/api", tags=["invitation"])
app.include_router(upload.router, prefix="/api", tags=["upload"])
app.include_router(admin.router, prefix="/api")
app.include_router(admin_gallery.router, prefix="/api")
app.include_router(admin_guestbook.router, prefix="/api")

# Uploaded images are served straight from disk
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message}
    )


def format_validation_errors(errors) -> str:
    """Turn pydantic errors into one readable line, e.g. "body.name: Field required"."""
    messages = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Validation error"


# Exception Handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions (400, 401, 404, etc.)."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"HTTPException on {request.method} {request.url.path}:\n"
        f"  Status: {exc.status_code}\n"
        f"  Detail: {exc.detail}"
    )
    response = error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """Handle request validation errors."""
    logger.warning(
        f"Validation error on {request.method} {request.url.path}:\n"
        f"  Errors: {exc.errors()}"
    )
    return error_response(status.HTTP_400_BAD_REQUEST, format_validation_errors(exc.errors()))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    """Handle requests over a slowapi limit."""
    logger.warning(f"Rate limit exceeded on {request.method} {request.url.path}: {exc.detail}")
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        f"Too many requests. Rate limit: {exc.detail}"
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}:\n"
        f"  Error: {str(exc)}\n"
        f"  Error type: {type(exc).__name__}",
        exc_info=True
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# Root Endpoints
@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": settings.API_TITLE,
        "status": "healthy",
        "version": settings.API_VERSION
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    """
    Database health check endpoint.
    Tests database connection and returns status.
    """
    try:
        result = await db.execute(text("SELECT 1"))
        return {
            "database": "connected",
            "status": "healthy",
            "result": result.scalar()
        }
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}", exc_info=True)
        return {
            "database": "error",
            "status": "unhealthy",
            "error": "Database connection failed"
        }


@app.get("/health/storage")
async def health_check_storage():
    """
    Storage health check endpoint.
    Validates that the upload directory exists and is writable.
    """
    if validate_storage_config():
        return {
            "storage": "writable",
            "status": "healthy",
            "upload_dir": settings.UPLOAD_DIR
        }
    return {
        "storage": "not_writable",
        "status": "unhealthy",
        "upload_dir": settings.UPLOAD_DIR
    }
