"""
DarkMode Backend — Shared API Schemas
=======================================

What:  Response models reused across routers: errors, health, pagination
       and plain acknowledgements.
"""

import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Body of every error response.

    `details` and `stack` are only populated outside production.
    """
    error: str = Field(description="Human-readable error message")
    code: str = Field(description="Machine-readable error code, e.g. LIMIT_EXCEEDED")
    request_id: str = Field(default="", description="Correlation ID (matches X-Request-ID)")
    details: Optional[Dict[str, Any]] = Field(default=None)
    stack: Optional[str] = Field(default=None)


class MessageResponse(BaseModel):
    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


class HealthResponse(BaseModel):
    status: str = Field(description="'healthy' or 'unhealthy'")
    version: str
    environment: str
    database: str = Field(description="'connected' or 'disconnected'")
    uptime_seconds: float
