"""Observability API endpoints.

Provides metrics and a database health check for monitoring.
"""

import time

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from database import get_db
from .logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Observability"])


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    include_in_schema=False,
)
def metrics():
    """Expose Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@router.get(
    "/health",
    summary="Health check endpoint",
    description="Returns database connectivity status",
)
def health_check(db: Session = Depends(get_db)):
    """Check database connectivity.

    Returns 200 when the database answers, 503 otherwise.
    """
    start = time.time()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": f"Database error: {str(e)}"}
        )

    latency_ms = (time.time() - start) * 1000
    return {
        "status": "healthy",
        "database": "Database connection OK",
        "latency_ms": round(latency_ms, 2),
    }
