"""
Main application entry point for the Contact Manager API.

This module initializes the FastAPI application, configures CORS and
logging, builds the process-wide session/throttle/cache stores,
initializes the rate limiter with a Redis backend, registers the error
handlers and includes routers for authentication, users and contacts.

Modules:
- FastAPI: Web framework
- CORSMiddleware: Middleware for handling CORS
- FastAPILimiter: Rate limiting
- app.cache: Redis (or fakeredis) connection and user cache
- app.state: Session issuer, login throttle and user cache wiring
- app.database: Database engine
- app.models: SQLAlchemy models
- app.contacts: Contacts router
- app.auth: Authentication router
- app.users: Users router
- app.core: Application settings
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import models, contacts
from app.auth import router as auth_router, seed_admin
from app.cache import connect_redis
from app.core import configure_logging, get_settings
from app.database import SessionLocal, engine
from app.errors import AppError, InternalError
from app.state import build_services
from app.users import router as users_router

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application startup and shutdown.

    Creates tables, seeds the configured administrator, connects to Redis
    (falling back to fakeredis), initializes the rate limiter and builds
    the in-memory stores. Closes Redis on shutdown.
    """
    configure_logging(settings)
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_admin(db, settings)
    finally:
        db.close()

    redis_client = await connect_redis(settings.REDIS_URL)
    await FastAPILimiter.init(redis_client)
    app.state.services = build_services(settings, redis_client)
    logger.info("Contact Manager API started in %s mode", settings.ENVIRONMENT)
    yield
    await FastAPILimiter.close()
    logger.info("Contact Manager API stopped")


# Initialize FastAPI application
app = FastAPI(title="Contact Manager API", lifespan=lifespan)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


def failure(status_code: int, message: str, headers=None) -> JSONResponse:
    """Build the uniform ``{"success": false, "message": ...}`` response."""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, InternalError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return failure(exc.status_code, exc.message, exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return failure(status.HTTP_400_BAD_REQUEST, "Invalid request")
    first = errors[0]
    field = next(
        (str(part) for part in reversed(first.get("loc", ())) if part != "body"),
        "request",
    )
    return failure(status.HTTP_400_BAD_REQUEST, f"{field}: {first.get('msg')}")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return failure(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(
        "Storage failure on %s %s", request.method, request.url.path, exc_info=exc
    )
    return failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    message = "Internal server error" if settings.is_production else str(exc)
    return failure(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


# Include routers for application areas
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(contacts.router)


@app.get("/")
def root():
    """
    Root endpoint for the API.

    Returns a simple JSON message directing users to the Swagger UI.

    Returns:
        dict: JSON message with information about the API
    """
    return {"msg": "Contact Manager API. Visit /docs for Swagger UI"}


@app.get("/health")
def health():
    """Liveness probe."""
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "Contact Manager API",
        "environment": settings.ENVIRONMENT,
    }
