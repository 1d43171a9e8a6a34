"""Health check endpoint."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from hospitalms.api.dependencies import SettingsDep, StoreDep
from hospitalms.api.models.health import DatabaseHealth, HealthResponse
from hospitalms.domain.ports import DocumentStorePort

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


def check_database_health(storage: DocumentStorePort, db_type: str) -> DatabaseHealth:
    """Ping the document store; never raises."""
    result = storage.ping()
    if result.is_success():
        return DatabaseHealth(status="connected", type=db_type, response_time_ms=round(result.value, 2))
    logger.warning(f"Database ping failed: {result.error}")
    return DatabaseHealth(status="disconnected", type=db_type, response_time_ms=None)


@router.get("/health", response_model=HealthResponse)
def health_check(storage: StoreDep, settings: SettingsDep) -> HealthResponse:
    """System health including database connectivity. Safe for public checks."""
    db_health = check_database_health(storage, settings.db_config.db_type)
    return HealthResponse(
        status="healthy" if db_health.status == "connected" else "unhealthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.version,
        database=db_health,
    )
