"""
CloudMart Functions — Health Check Route
=========================================

What:  GET /health for monitoring and load balancer health checks.
How:   Reports the version, uptime and whether a storage connection string is
       configured. It does not call the storage services, so it stays cheap
       and always answers 200; "misconfigured" tells operators why storage
       endpoints are answering 500.
"""

import logging
import time

from fastapi import APIRouter, Depends

from cloudmart import __version__
from cloudmart.config import Settings
from cloudmart.dependencies import get_settings
from cloudmart.schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    storage_status = "configured" if settings.storage_configured else "missing_connection_string"
    if not settings.storage_configured:
        logger.warning("Health check: AzureWebJobsStorage is not set")

    return HealthResponse(
        status="healthy" if settings.storage_configured else "misconfigured",
        version=__version__,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
