import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.core.exceptions import (
    ResourceNotFoundError,
    PermissionDeniedError,
    ExportFormatNotAllowedError,
    UsageLimitExceededError,
    InvalidDateRangeError,
)
from app.api.v1.router import api_router
from app.db.session import init_db

settings = get_settings()

# Configure logging - suppress noisy third-party loggers
logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)

logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("google").setLevel(logging.WARNING)
logging.getLogger("firebase_admin").setLevel(logging.WARNING)
logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.APP_NAME}...")
    await init_db()
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="""
## Receipt Analytics API

Stores receipts extracted by the receipt-parsing service and turns them into
spending analytics.

### Features
- **Receipts**: Store, list, edit, delete and export extracted receipts
- **Analytics**: Daily trend, category breakdown, top merchants, monthly
  comparison, tax-deductible summary and spending alerts
- **Usage**: Monthly receipt quota per plan tier

### Authentication
All endpoints require Firebase Authentication. Include the ID token in the Authorization header:
```
Authorization: Bearer <firebase_id_token>
```
""",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "receipts", "description": "Store and manage receipts"},
        {"name": "analytics", "description": "Spending analytics and alerts"},
        {"name": "usage", "description": "Plan tier and receipt quota"},
        {"name": "health", "description": "Health checks"},
    ],
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(ResourceNotFoundError)
async def not_found_exception_handler(request: Request, exc: ResourceNotFoundError):
    return JSONResponse(
        status_code=404,
        content={
            "error": "not_found",
            "message": exc.message,
        },
    )


@app.exception_handler(PermissionDeniedError)
async def permission_denied_exception_handler(
    request: Request, exc: PermissionDeniedError
):
    return JSONResponse(
        status_code=403,
        content={
            "error": "permission_denied",
            "message": exc.message,
        },
    )


@app.exception_handler(ExportFormatNotAllowedError)
async def export_format_not_allowed_exception_handler(
    request: Request, exc: ExportFormatNotAllowedError
):
    return JSONResponse(
        status_code=403,
        content={
            "error": "export_format_not_allowed",
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.exception_handler(InvalidDateRangeError)
async def invalid_date_range_exception_handler(
    request: Request, exc: InvalidDateRangeError
):
    return JSONResponse(
        status_code=400,
        content={
            "error": "invalid_date_range",
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.exception_handler(UsageLimitExceededError)
async def usage_limit_exceeded_exception_handler(
    request: Request, exc: UsageLimitExceededError
):
    """Handle quota exceeded errors with 429 status."""
    retry_after = exc.details.get("retry_after_seconds") or 0

    return JSONResponse(
        status_code=429,
        content={
            "error": "usage_limit_exceeded",
            "message": exc.message,
            "receipts_used": exc.details.get("receipts_used"),
            "receipts_limit": exc.details.get("receipts_limit"),
            "period_end_date": exc.details.get("period_end_date"),
            "retry_after_seconds": retry_after,
        },
        headers={
            "Retry-After": str(retry_after),
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle FastAPI HTTPExceptions with consistent format."""
    error_type = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        422: "validation_error",
    }.get(exc.status_code, "http_error")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": error_type,
            "message": exc.detail if isinstance(exc.detail, str) else str(exc.detail),
        },
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error occurred")
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
        },
    )


# Include API routers
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


# Root health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.APP_NAME}
