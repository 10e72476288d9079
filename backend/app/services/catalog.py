"""
Category and tag management. Neither has a moderation state; reads are
public and every mutation is moderator-only.
"""
import logging
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.database import unit_of_work
from app.exceptions import ConflictError
from app.models import Category
from app.schemas import CategoryCreate, CategoryResponse, CategoryUpdate, TagResponse
from app.services.moderation import Caller, require_moderator
from app.services.tags import TagRepository

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list(self) -> List[CategoryResponse]:
        with unit_of_work(self.session_factory, "fetch categories") as session:
            categories = session.execute(select(Category).order_by(Category.name)).scalars()
            return [CategoryResponse.model_validate(c) for c in categories]

    def get(self, category_id: int) -> Optional[CategoryResponse]:
        with unit_of_work(self.session_factory, "fetch category") as session:
            category = session.get(Category, category_id)
            return CategoryResponse.model_validate(category) if category else None

    def create(self, caller: Caller, data: CategoryCreate) -> CategoryResponse:
        require_moderator(caller, "create categories")
        with unit_of_work(self.session_factory, "create category") as session:
            existing = session.execute(
                select(Category.id).where(Category.name == data.name)
            ).scalar_one_or_none()
            if existing is not None:
                raise ConflictError(f"Category '{data.name}' already exists")

            category = Category(**data.model_dump())
            session.add(category)
            try:
                session.flush()
            except IntegrityError:
                # Lost a race with a concurrent create of the same name
                raise ConflictError(f"Category '{data.name}' already exists")
            result = CategoryResponse.model_validate(category)

        logger.info(f"Added category: {result.name}")
        return result

    def update(self, caller: Caller, category_id: int, data: CategoryUpdate) -> Optional[CategoryResponse]:
        require_moderator(caller, "update categories")
        values = data.model_dump(exclude_unset=True)
        if not values:
            return None

        with unit_of_work(self.session_factory, "update category") as session:
            try:
                result = session.execute(
                    update(Category)
                    .where(Category.id == category_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
            except IntegrityError:
                raise ConflictError(f"Category '{values.get('name')}' already exists")
            if result.rowcount == 0:
                return None
            category = session.get(Category, category_id, populate_existing=True)
            return CategoryResponse.model_validate(category)

    def delete(self, caller: Caller, category_id: int) -> bool:
        """
        Delete a category. Categories still referenced by resources are
        refused with ConflictError (the foreign key is ON DELETE RESTRICT).
        """
        require_moderator(caller, "delete categories")
        with unit_of_work(self.session_factory, "delete category") as session:
            try:
                result = session.execute(
                    delete(Category)
                    .where(Category.id == category_id)
                    .execution_options(synchronize_session=False)
                )
            except IntegrityError:
                raise ConflictError("Category is still used by resources")
            deleted = result.rowcount > 0

        if deleted:
            logger.info(f"Deleted category {category_id}")
        return deleted


class TagService:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list(self) -> List[TagResponse]:
        with unit_of_work(self.session_factory, "fetch tags") as session:
            return [TagResponse.model_validate(t) for t in TagRepository(session).list_tags()]

    def popular(self, limit: int = 15) -> List[dict]:
        with unit_of_work(self.session_factory, "fetch tags") as session:
            return TagRepository(session).popular(limit)

    def search(self, query: str, limit: int = 10) -> List[dict]:
        with unit_of_work(self.session_factory, "search tags") as session:
            return TagRepository(session).search(query, limit)

    def create(self, caller: Caller, name: str) -> TagResponse:
        """Create a tag ahead of use. Creating an existing tag returns it unchanged."""
        require_moderator(caller, "create tags")
        with unit_of_work(self.session_factory, "create tag") as session:
            tags = TagRepository(session)
            tag = tags.get(tags.ensure_tag(name))
            return TagResponse.model_validate(tag)

    def delete(self, caller: Caller, tag_id: int) -> bool:
        require_moderator(caller, "delete tags")
        with unit_of_work(self.session_factory, "delete tag") as session:
            deleted = TagRepository(session).delete(tag_id)

        if deleted:
            logger.info(f"Deleted tag {tag_id}")
        return deleted
