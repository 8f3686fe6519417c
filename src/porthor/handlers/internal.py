"""Handlers for internal routes not exposed outside the cluster."""

from fastapi import APIRouter
from safir.metadata import Metadata, get_metadata
from safir.slack.webhook import SlackRouteErrorHandler

from ..models.health import HealthCheck, HealthStatus

router = APIRouter(route_class=SlackRouteErrorHandler)

__all__ = ["router"]


@router.get(
    "/api/metadata",
    description=(
        "Return metadata about the running application. This route should"
        " not be exposed outside the cluster."
    ),
    response_model=Metadata,
    response_model_exclude_none=True,
    summary="Application metadata",
    tags=["internal"],
)
async def get_index() -> Metadata:
    return get_metadata(package_name="porthor", application_name="porthor")


@router.get(
    "/api/health",
    description="Perform an internal health check",
    response_model=HealthCheck,
    summary="Health check",
    tags=["internal"],
)
async def get_health() -> HealthCheck:
    return HealthCheck(status=HealthStatus.HEALTHY)
