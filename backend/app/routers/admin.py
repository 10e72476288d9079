"""
Moderator endpoints: review queue, moderation decisions, dashboard.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional

from app.config import settings
from app.dependencies import get_dashboard, get_gateway
from app.middleware.auth import get_caller
from app.models import ResourceStatus
from app.schemas import (
    DashboardSummary, ListMeta, ModerationRequest, ResourceListResponse, ResourceResponse
)
from app.services.dashboard import DashboardAggregator
from app.services.moderation import Caller, ModerationGateway, require_moderator

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/dashboard", response_model=DashboardSummary)
def get_dashboard_summary(
    caller: Caller = Depends(get_caller),
    dashboard: DashboardAggregator = Depends(get_dashboard)
):
    """
    Resource counts by status plus the most recent submissions.
    """
    require_moderator(caller, "view the dashboard")
    return dashboard.summary(settings.DASHBOARD_RECENT_LIMIT)


@router.get("/resources", response_model=ResourceListResponse)
def list_resources_for_review(
    status_filter: Optional[ResourceStatus] = Query(None, alias="status"),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway)
):
    require_moderator(caller, "review resources")
    resources = gateway.list(caller, status_filter, limit, offset)
    return ResourceListResponse(
        data=resources,
        meta=ListMeta(count=len(resources), limit=limit, offset=offset)
    )


@router.put("/resources/{resource_id}/moderate", response_model=ResourceResponse)
def moderate_resource(
    resource_id: int,
    decision: ModerationRequest,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway)
):
    """
    Approve or reject a resource.
    """
    resource = gateway.moderate(caller, resource_id, decision.status)
    if not resource:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Resource with id {resource_id} not found"
        )
    return resource
