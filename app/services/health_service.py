# app/services/health_service.py
from typing import Dict, Any
from datetime import datetime, timezone
import platform
import time
import logging

from app.config import Settings
from app.services.storage_service import StorageBackend

logger = logging.getLogger(__name__)

STARTED_AT = time.time()


def get_health(settings: Settings, storage: StorageBackend) -> Dict[str, Any]:
    """Health status of the API and its storage backend"""
    try:
        storage_healthy = storage.check_connection()
        storage_status = {
            "healthy": storage_healthy,
            "type": storage.name,
            "status": "connected" if storage_healthy else "disconnected",
        }
    except Exception as e:
        logger.error(f"Storage health check failed: {e}")
        storage_status = {"healthy": False, "type": storage.name, "error": str(e)}

    return {
        "status": "OK" if storage_status["healthy"] else "DEGRADED",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.APP_VERSION,
        "uptime": round(time.time() - STARTED_AT, 3),
        "python_version": platform.python_version(),
        "storage": storage_status,
    }
