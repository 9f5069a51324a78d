"""
API router for health checks
"""

from fastapi import APIRouter
from typing import Dict, Any
import logging
import platform
import psutil

from sales_indicators.config.settings import settings
from sales_indicators.db.session import check_database_connection

# Create router
router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/health",
    summary="Health check",
    description="Check API and database health status"
)
def health_check() -> Dict[str, Any]:
    """
    Check API and component health status

    Returns:
        Dict: Health status of API components
    """
    health_data = {
        "status": "ok",
        "version": settings.APP_VERSION,
        "components": {},
    }

    db_status = check_database_connection()
    health_data["components"]["database"] = {
        "status": "ok" if db_status else "error",
        "message": "Connected" if db_status else "Failed to connect",
        "type": "SQL Server",
        "database": settings.DB_DATABASE,
    }
    if not db_status:
        health_data["status"] = "degraded"

    memory = psutil.virtual_memory()
    health_data["system"] = {
        "python_version": platform.python_version(),
        "platform": platform.platform(),
        "cpu_usage_percent": psutil.cpu_percent(interval=None),
        "memory_used_percent": memory.percent,
    }

    return health_data
