"""Health check endpoints."""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

from ensogrow.db import get_db
from ensogrow.startup import REQUIRED_TABLES

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """
    Basic health check - process is alive.

    Used by load balancers and monitoring systems.
    """
    return {"status": "healthy"}


@router.get("/ready")
async def ready(response: Response, db: Session = Depends(get_db)):
    """
    Readiness check - verifies database connectivity and required tables.

    Returns 200 if ready to accept traffic, 503 if not ready.
    """
    try:
        connection = db.connection()
        connection.execute(text("SELECT 1"))
        existing_tables = set(inspect(connection).get_table_names())
    except Exception as e:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {
            "status": "not_ready",
            "database": "disconnected",
            "error": str(e),
            "message": "Database connection failed"
        }

    missing_tables = set(REQUIRED_TABLES) - existing_tables
    if missing_tables:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {
            "status": "not_ready",
            "database": "connected",
            "tables": "missing",
            "missing_tables": sorted(missing_tables),
            "message": "Run migrations: alembic upgrade head"
        }

    return {
        "status": "ready",
        "database": "connected",
        "tables": "present"
    }
