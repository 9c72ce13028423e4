"""
StackIt Backend — Shared Response Schemas
==========================================

What:  Error and health payloads used across routers.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Shape of every error body produced by the global exception handlers.

    Example:
        {
            "error": "self_action",
            "message": "You cannot vote on your own answer",
            "details": {"target_type": "answer"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable explanation")
    details: Optional[Dict[str, Any]] = Field(default=None)
    request_id: str = Field(default="", description="Correlates with server logs")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy, degraded or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    notification_queue: str = Field(description="running, stopped or saturated")
    notification_backlog: int = Field(default=0, description="Notifications waiting to be written")
    uptime_seconds: float
