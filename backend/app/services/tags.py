"""
Tag normalization and persistence.

Tags are keyed by their canonical form (trimmed, lowercase). Creation is
"insert, ignore the unique conflict, then select" so concurrent submissions
of the same new tag converge on a single row.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import case, delete, func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import InvalidTagError
from app.models import Resource, ResourceStatus, Tag, resource_tags

logger = logging.getLogger(__name__)

MAX_TAG_LENGTH = Tag.__table__.c.name.type.length


def normalize_tag(raw: str) -> str:
    """
    Canonical key for a tag: surrounding whitespace removed, lowercased.

    Raises:
        InvalidTagError: if nothing is left after trimming, or the result
            does not fit the tag column
    """
    name = (raw or "").strip().lower()
    if not name:
        raise InvalidTagError()
    if len(name) > MAX_TAG_LENGTH:
        raise InvalidTagError(f"Tag '{name}' is longer than {MAX_TAG_LENGTH} characters")
    return name


def normalize_tags(raw_names: Optional[Iterable[str]]) -> List[str]:
    """Normalize a submitted tag list, dropping blanks and duplicates (first seen wins)."""
    seen = []
    for raw in raw_names or []:
        if raw is None or not raw.strip():
            continue
        name = normalize_tag(raw)
        if name not in seen:
            seen.append(name)
    return seen


class TagRepository:
    def __init__(self, session: Session):
        self.session = session

    def _insert_ignoring_conflict(self, table, values: dict, index_elements: List[str]) -> None:
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(table).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite.insert(table).values(**values)
        else:
            # No native upsert: isolate the insert in a savepoint instead
            try:
                with self.session.begin_nested():
                    self.session.execute(insert(table).values(**values))
            except IntegrityError:
                logger.debug(f"Row already present in {table.name}: {values}")
            return
        self.session.execute(stmt.on_conflict_do_nothing(index_elements=index_elements))

    def ensure_tag(self, name: str) -> int:
        """Return the id of the tag with this canonical name, creating it if needed."""
        name = normalize_tag(name)
        self._insert_ignoring_conflict(
            Tag.__table__,
            {"name": name, "created_at": datetime.utcnow()},
            ["name"],
        )
        return self.session.execute(select(Tag.id).where(Tag.name == name)).scalar_one()

    def replace_tags_for_resource(self, resource_id: int, tag_names: Iterable[str]) -> List[int]:
        """
        Make the resource's tag set exactly ``tag_names``.

        Must run inside the caller's transaction: the delete is only undone
        if the whole unit of work rolls back.
        """
        self.session.execute(
            delete(resource_tags).where(resource_tags.c.resource_id == resource_id)
        )
        tag_ids = []
        for name in tag_names:
            tag_id = self.ensure_tag(name)
            self._insert_ignoring_conflict(
                resource_tags,
                {"resource_id": resource_id, "tag_id": tag_id},
                ["resource_id", "tag_id"],
            )
            if tag_id not in tag_ids:
                tag_ids.append(tag_id)
        # Relationship collections loaded earlier in this session are now stale
        self.session.expire_all()
        return tag_ids

    def get(self, tag_id: int) -> Optional[Tag]:
        return self.session.get(Tag, tag_id)

    def get_by_name(self, name: str) -> Optional[Tag]:
        return self.session.execute(
            select(Tag).where(Tag.name == normalize_tag(name))
        ).scalar_one_or_none()

    def list_tags(self) -> List[Tag]:
        return list(self.session.execute(select(Tag).order_by(Tag.name)).scalars())

    def delete(self, tag_id: int) -> bool:
        result = self.session.execute(delete(Tag).where(Tag.id == tag_id))
        return result.rowcount > 0

    def popular(self, limit: int = 15) -> List[dict]:
        """Tags used by at least one approved resource, most used first."""
        resource_count = func.count(resource_tags.c.resource_id).label("resource_count")
        stmt = (
            select(Tag.id, Tag.name, resource_count)
            .join(resource_tags, resource_tags.c.tag_id == Tag.id)
            .join(Resource, Resource.id == resource_tags.c.resource_id)
            .where(Resource.status == ResourceStatus.APPROVED.value)
            .group_by(Tag.id, Tag.name)
            .order_by(resource_count.desc(), Tag.name.asc())
            .limit(limit)
        )
        return [dict(row._mapping) for row in self.session.execute(stmt)]

    def search(self, query: str, limit: int = 10) -> List[dict]:
        """
        Autocomplete lookup. Prefix matches rank ahead of substring matches,
        then by how many approved resources use the tag.
        """
        term = (query or "").strip().lower()
        if not term:
            return self.popular(limit)

        resource_count = func.count(Resource.id).label("resource_count")
        prefix_rank = case((Tag.name.startswith(term, autoescape=True), 0), else_=1)
        stmt = (
            select(Tag.id, Tag.name, resource_count)
            .outerjoin(resource_tags, resource_tags.c.tag_id == Tag.id)
            .outerjoin(
                Resource,
                (Resource.id == resource_tags.c.resource_id)
                & (Resource.status == ResourceStatus.APPROVED.value),
            )
            .where(Tag.name.contains(term, autoescape=True))
            .group_by(Tag.id, Tag.name)
            .order_by(prefix_rank, resource_count.desc(), Tag.name.asc())
            .limit(limit)
        )
        return [dict(row._mapping) for row in self.session.execute(stmt)]
