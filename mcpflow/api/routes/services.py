"""
Services API Routes.

Endpoints for browsing the registered MCP services.
"""

from fastapi import APIRouter, HTTPException
import logging

from mcpflow.api.schemas import (
    ErrorResponse,
    ServiceInfo,
    ServiceListResponse,
)
from mcpflow.services.registry import service_registry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])


@router.get(
    "",
    response_model=ServiceListResponse,
)
async def list_services() -> ServiceListResponse:
    """
    List all registered services.

    Service nodes bind to a service by its slug.
    """
    services = [ServiceInfo(**s) for s in service_registry.list_services()]
    return ServiceListResponse(services=services, total=len(services))


@router.get(
    "/{slug}",
    response_model=ServiceInfo,
    responses={404: {"model": ErrorResponse}},
)
async def get_service(slug: str) -> ServiceInfo:
    """Get information about a specific service."""
    service = service_registry.get(slug)
    if not service:
        raise HTTPException(
            status_code=404,
            detail=f"Service '{slug}' not found"
        )
    return ServiceInfo(**service.to_dict())
