"""Wine-trade sourcing backend - Main FastAPI Application

This module creates and configures the FastAPI application, including:
- Customer PO auto-match router
- Middleware (request ID correlation)
- Exception handlers
- Health and metrics endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from observability.logging_config import configure_logging
from observability.middleware import RequestIDMiddleware
from observability.router import router as observability_router
from customer_pos.router import router as customer_pos_router

# Configure logging
configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Wine-trade sourcing API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    yield

    logger.info("Wine-trade sourcing API shutting down...")


app = FastAPI(
    title="Wine-Trade Sourcing API",
    description="Customer PO to supplier quote auto-matching for B2B wine trade",
    version="0.1.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    openapi_url="/openapi.json" if settings.ENVIRONMENT != "production" else None,
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE CONFIGURATION
# =============================================================================

app.add_middleware(RequestIDMiddleware)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Reject malformed ids and item edits with per-field details."""
    logger.warning(f"Rejected {request.method} {request.url.path}: invalid request")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Request body or path parameters are invalid",
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without non-serializable ctx values."""
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request,
    exc: SQLAlchemyError
) -> JSONResponse:
    """Database failures outside an auto-match run (reads, health).

    The driver message stays in the log only.
    """
    logger.error(f"Unhandled database error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "database_error",
            "message": "The sourcing database is unavailable. Please retry.",
        },
    )


# =============================================================================
# ROUTERS
# =============================================================================

app.include_router(observability_router)
app.include_router(customer_pos_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
