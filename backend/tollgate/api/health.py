"""Health check endpoints"""
import time
from datetime import datetime
from typing import Dict, Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tollgate import __version__
from tollgate.database import get_db
from tollgate.services.credential_store import CredentialStore
from tollgate.services.refresh_registry import RefreshTokenRegistry
from tollgate.utils.logger import logger

router = APIRouter(prefix="/health", tags=["health"])

# Track startup time
STARTUP_TIME = time.time()


def _unavailable(body: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)


@router.get("")
def health_check():
    """
    Basic health check endpoint

    Returns 200 if service is running
    """
    return {
        "status": "healthy",
        "service": "Tollgate",
        "version": __version__,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/ready")
def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check - verifies the database answers

    Returns 200 if ready to serve traffic, 503 if not ready
    """
    checks = {
        "database": False,
        "database_latency_ms": None
    }

    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000
        checks["database"] = True
        checks["database_latency_ms"] = round(latency_ms, 2)
    except SQLAlchemyError as e:
        logger.error(f"Readiness database check failed: {e}")
        return _unavailable({
            "status": "unhealthy",
            "checks": checks,
            "message": "Database check failed"
        })

    if latency_ms > 1000:  # More than 1 second
        return _unavailable({
            "status": "degraded",
            "checks": checks,
            "message": "Database latency is high"
        })

    return {
        "status": "ready",
        "checks": checks,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/live")
def liveness_check():
    """
    Liveness check - verifies service is alive

    Used by Kubernetes liveness probe
    """
    return {
        "status": "alive",
        "uptime_seconds": round(time.time() - STARTUP_TIME, 2),
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/stats")
def health_stats(db: Session = Depends(get_db)):
    """
    User and session counts plus database latency
    """
    try:
        total_users = CredentialStore(db).count()
        active_sessions = RefreshTokenRegistry(db).active_count()

        db_start = time.time()
        db.execute(text("SELECT 1"))
        db_latency_ms = (time.time() - db_start) * 1000
    except SQLAlchemyError as e:
        logger.error(f"Stats query failed: {e}")
        return _unavailable({
            "status": "error",
            "message": "Database unavailable",
            "timestamp": datetime.utcnow().isoformat()
        })

    return {
        "status": "healthy",
        "users": {
            "total": total_users
        },
        "sessions": {
            "active": active_sessions
        },
        "database": {
            "connected": True,
            "latency_ms": round(db_latency_ms, 2)
        },
        "system": {
            "uptime_seconds": round(time.time() - STARTUP_TIME, 2)
        },
        "timestamp": datetime.utcnow().isoformat()
    }
