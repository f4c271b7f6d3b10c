"""
Health check — local cache, session presence and backend reachability.
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from fleetlog.config import settings
from fleetlog.database import get_db
from fleetlog.dependencies import Services, get_services
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="Gateway health check")
def health_check(db: Session = Depends(get_db), services: Services = Depends(get_services)):
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "cache": "unknown",
        "session": "active" if services.session_store.current else "none",
        "backend": "unknown",
    }

    try:
        db.execute(text("SELECT 1"))
        result["cache"] = "ok"
    except Exception as e:
        result["cache"] = f"error: {str(e)}"
        result["status"] = "degraded"

    # Any HTTP answer (even 404) means the backend is reachable
    try:
        resp = requests.get(settings.API_BASE_URL, timeout=3)
        result["backend"] = f"reachable (http_{resp.status_code})"
    except requests.exceptions.RequestException as e:
        result["backend"] = f"unreachable: {e.__class__.__name__}"
        result["status"] = "degraded"

    return result
