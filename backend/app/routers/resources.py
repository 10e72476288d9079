from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from typing import List, Optional

from app.config import settings
from app.dependencies import get_gateway
from app.middleware.auth import get_caller
from app.models import ResourceStatus
from app.schemas import (
    ResourceCreate, ResourceEdit, ResourceResponse, ResourceListResponse, ListMeta, VoteRequest
)
from app.services.moderation import Caller, ModerationGateway

router = APIRouter(prefix="/resources", tags=["resources"])


def _not_found(resource_id: int, detail: Optional[str] = None) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail or f"Resource with id {resource_id} not found"
    )

# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@router.get("", response_model=ResourceListResponse)
def list_resources(
    status_filter: Optional[ResourceStatus] = Query(None, alias="status"),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway)
):
    """
    List resources newest first.
    Only moderators see pending and rejected resources.
    """
    resources = gateway.list(caller, status_filter, limit, offset)
    return ResourceListResponse(
        data=resources,
        meta=ListMeta(count=len(resources), limit=limit, offset=offset)
    )

@router.get("/{resource_id}", response_model=ResourceResponse)
def get_resource(
    resource_id: int,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway)
):
    resource = gateway.get(caller, resource_id)
    if not resource:
        raise _not_found(resource_id)
    return resource

@router.get("/{resource_id}/related", response_model=List[ResourceResponse])
def get_related_resources(
    resource_id: int,
    limit: int = Query(6, ge=1, le=24),
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway)
):
    """
    Approved resources sharing tags with this one, most shared tags first.
    """
    return gateway.related(caller, resource_id, limit)

@router.post("", response_model=ResourceResponse, status_code=status.HTTP_201_CREATED)
def submit_resource(
    resource: ResourceCreate,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway)
):
    """
    Submit a resource for review.
    Open to anonymous callers; the resource stays pending until moderated.
    """
    return gateway.submit(caller, resource)

@router.post("/{resource_id}/vote", response_model=ResourceResponse)
def vote_resource(
    resource_id: int,
    vote: VoteRequest,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway)
):
    resource = gateway.vote(caller, resource_id, vote.type)
    if not resource:
        raise _not_found(resource_id, "Resource not found or not approved")
    return resource

# ============================================================================
# MODERATOR ENDPOINTS
# ============================================================================

@router.put("/{resource_id}", response_model=ResourceResponse)
def update_resource(
    resource_id: int,
    resource: ResourceEdit,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway)
):
    """
    Partially update a resource. Fields left out of the body are untouched;
    tags are replaced only when "tags" is present.
    """
    updated = gateway.edit(caller, resource_id, resource.field_changes(), resource.tags)
    if not updated:
        raise _not_found(resource_id)
    return updated

@router.delete("/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_resource(
    resource_id: int,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway)
):
    if not gateway.remove(caller, resource_id):
        raise _not_found(resource_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
