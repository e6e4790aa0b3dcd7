"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from fastapi import APIRouter, Depends, HTTPException

from app.core.settings import settings
from app.dependencies import get_repos
from app.models.base import utcnow
from app.repositories import Repositories
from app.repositories.base import AlertCriteria


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "OK",
        "message": f"{settings.APP_NAME} is running",
        "version": settings.APP_VERSION,
        "timestamp": utcnow().isoformat(),
    }


@router.get("/db")
def database_health(repos: Repositories = Depends(get_repos)):
    """
    Database connectivity check.
    Runs a cheap read against the alert store.
    """
    try:
        repos.alerts.query(AlertCriteria(statuses=["pending"]))
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Database connection failed: {e}")

    return {
        "status": "healthy",
        "database": "memory" if settings.USE_MOCK_DB else "firestore",
        "connected": True,
        "timestamp": utcnow().isoformat(),
    }
