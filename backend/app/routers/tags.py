from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from typing import List

from app.dependencies import get_tag_service
from app.middleware.auth import get_caller
from app.schemas import TagCreate, TagResponse, TagWithCount
from app.services.catalog import TagService
from app.services.moderation import Caller

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("", response_model=List[TagWithCount])
def list_popular_tags(
    limit: int = Query(15, ge=1, le=100),
    tags: TagService = Depends(get_tag_service)
):
    """
    Tags in use on approved resources, most used first.
    """
    return tags.popular(limit)


@router.get("/all", response_model=List[TagResponse])
def list_all_tags(tags: TagService = Depends(get_tag_service)):
    return tags.list()


@router.get("/search", response_model=List[TagWithCount])
def search_tags(
    q: str = "",
    limit: int = Query(10, ge=1, le=50),
    tags: TagService = Depends(get_tag_service)
):
    """
    Tag autocomplete. An empty query returns the most popular tags.
    """
    return tags.search(q, limit)


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
def create_tag(
    tag: TagCreate,
    caller: Caller = Depends(get_caller),
    tags: TagService = Depends(get_tag_service)
):
    return tags.create(caller, tag.name)


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tag(
    tag_id: int,
    caller: Caller = Depends(get_caller),
    tags: TagService = Depends(get_tag_service)
):
    if not tags.delete(caller, tag_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tag with id {tag_id} not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
