# backend/evently/api/v1/health.py

"""
Health endpoints.

- /api/v1/health       -> liveness, no DB
- /api/v1/health/db    -> readiness (SELECT 1)
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from evently.core.config import settings
from evently.db.session import get_db

logger = logging.getLogger("evently.health")

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Liveness probe")
def health():
    return {
        "status": "ok",
        "service": "evently-backend",
        "version": settings.version,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/db", summary="Database readiness probe")
def health_db(db: Session = Depends(get_db)):
    """
    Returns 200 when the database answers a trivial query, 503 otherwise.
    """
    start = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("DB health check failed")
        raise HTTPException(
            status_code=503,
            detail={"code": "DB_UNAVAILABLE", "message": "Database is unreachable.", "db": "down"},
        )

    return {
        "status": "ok",
        "db": "up",
        "latency_ms": int((time.perf_counter() - start) * 1000),
    }
