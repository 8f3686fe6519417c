"""Models for health checks."""

from __future__ import annotations

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field

__all__ = [
    "HealthCheck",
    "HealthStatus",
]


class HealthStatus(str, Enum):
    """Status of health check.

    Porthor keeps no state of its own, so the only status is healthy. A
    process that cannot serve requests will not answer at all.
    """

    HEALTHY = "healthy"


class HealthCheck(BaseModel):
    """Results of an internal health check."""

    status: Annotated[HealthStatus, Field(title="Health status")]
