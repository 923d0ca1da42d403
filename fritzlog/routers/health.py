# fritzlog/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + log poller / router session.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from fritzlog.database import get_db
from fritzlog.utils.clock import DeviceClock

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Poller state (last cycle, last error, router session state)
    """
    result = {
        "status": "ok",
        "timestamp": DeviceClock.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "poller": "disabled",
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    poller = getattr(request.app.state, "poller", None)
    if poller is not None:
        status = poller.status
        result["poller"] = {
            "cycles": status.cycles,
            "last_cycle_at": status.last_cycle_at.isoformat() if status.last_cycle_at else None,
            "last_upserted": status.last_upserted,
            "last_error": status.last_error,
            "session": poller.sessions.state.value,
        }
        if status.fatal or status.last_error:
            result["status"] = "degraded"

    return result
