"""
CloudMart Functions — Health Schema
====================================
"""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Returned by GET /health."""

    status: str = Field(description="Overall service status: healthy, misconfigured")
    version: str = Field(description="Application version")
    storage: str = Field(description="Storage configuration: configured, missing_connection_string")
    uptime_seconds: float = Field(description="Seconds since service started")
