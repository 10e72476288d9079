from fastapi import APIRouter, Depends, HTTPException, Response, status
from typing import List

from app.dependencies import get_category_service
from app.middleware.auth import get_caller
from app.schemas import CategoryCreate, CategoryResponse, CategoryUpdate
from app.services.catalog import CategoryService
from app.services.moderation import Caller

router = APIRouter(prefix="/categories", tags=["categories"])


def _not_found(category_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Category with id {category_id} not found"
    )


@router.get("", response_model=List[CategoryResponse])
def list_categories(categories: CategoryService = Depends(get_category_service)):
    return categories.list()


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(category_id: int, categories: CategoryService = Depends(get_category_service)):
    category = categories.get(category_id)
    if not category:
        raise _not_found(category_id)
    return category


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    category: CategoryCreate,
    caller: Caller = Depends(get_caller),
    categories: CategoryService = Depends(get_category_service)
):
    return categories.create(caller, category)


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    category: CategoryUpdate,
    caller: Caller = Depends(get_caller),
    categories: CategoryService = Depends(get_category_service)
):
    updated = categories.update(caller, category_id, category)
    if not updated:
        raise _not_found(category_id)
    return updated


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: int,
    caller: Caller = Depends(get_caller),
    categories: CategoryService = Depends(get_category_service)
):
    """
    Delete a category. Fails with 409 while resources still reference it.
    """
    if not categories.delete(caller, category_id):
        raise _not_found(category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
