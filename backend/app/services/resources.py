"""
Persistence for resource records.

Every method works on the session it was given and never commits; the
lifecycle engine owns the transaction.
"""
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, joinedload, selectinload

from app.models import Resource, ResourceStatus, resource_tags
from app.schemas import ResourceCreate, ResourceUpdate

CREATE_FIELDS = ("title", "description", "url", "resource_type", "category_id", "submitted_by")
UPDATE_FIELDS = CREATE_FIELDS + ("status",)


class ResourceRepository:
    def __init__(self, session: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.session = session
        self.clock = clock

    def _with_details(self):
        return (
            select(Resource)
            .options(joinedload(Resource.category), selectinload(Resource.tags))
            .execution_options(populate_existing=True)
        )

    def create(self, fields: ResourceCreate) -> Resource:
        """Insert a new submission. Status is always pending, whatever the input says."""
        data = fields.model_dump(mode="json")
        values = {key: data.get(key) for key in CREATE_FIELDS if key in data}
        resource = Resource(
            **values,
            status=ResourceStatus.PENDING.value,
            vote_score=0,
            created_at=self.clock(),
            approved_at=None,
        )
        self.session.add(resource)
        self.session.flush()
        return resource

    def get(self, resource_id: int) -> Optional[Resource]:
        return self.session.execute(
            self._with_details().where(Resource.id == resource_id)
        ).scalar_one_or_none()

    def list(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Resource]:
        """Newest first, with category and tags loaded."""
        query = self._with_details()
        if status:
            query = query.where(Resource.status == status)
        query = (
            query.order_by(Resource.created_at.desc(), Resource.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.execute(query).scalars())

    def update(self, resource_id: int, changes: ResourceUpdate) -> Optional[Resource]:
        """
        Write only the fields the caller supplied.

        Returns None both when the resource does not exist and when there is
        nothing to write.
        """
        supplied = changes.changes()
        values = {key: supplied[key] for key in UPDATE_FIELDS if key in supplied}
        if not values:
            return None

        if values.get("status") == ResourceStatus.APPROVED.value:
            values["approved_at"] = self.clock()

        result = self.session.execute(
            update(Resource)
            .where(Resource.id == resource_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return self.get(resource_id)

    def delete(self, resource_id: int) -> bool:
        # resource_tags rows go with it via ON DELETE CASCADE
        result = self.session.execute(
            delete(Resource)
            .where(Resource.id == resource_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def increment_vote(self, resource_id: int, delta: int) -> Optional[Resource]:
        """
        Atomically add ``delta`` to the vote score of an approved resource.

        A pending or rejected resource is indistinguishable from a missing one.
        """
        result = self.session.execute(
            update(Resource)
            .where(
                Resource.id == resource_id,
                Resource.status == ResourceStatus.APPROVED.value,
            )
            .values(vote_score=Resource.vote_score + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return self.get(resource_id)

    def related(self, resource_id: int, limit: int = 6) -> List[Resource]:
        """Approved resources sharing tags with this one, most shared tags first."""
        own_tags = select(resource_tags.c.tag_id).where(resource_tags.c.resource_id == resource_id)
        matching_tags = func.count(resource_tags.c.tag_id).label("matching_tags")
        ranked = (
            select(Resource.id, matching_tags)
            .join(resource_tags, resource_tags.c.resource_id == Resource.id)
            .where(
                Resource.status == ResourceStatus.APPROVED.value,
                Resource.id != resource_id,
                resource_tags.c.tag_id.in_(own_tags),
            )
            .group_by(Resource.id, Resource.vote_score)
            .order_by(matching_tags.desc(), Resource.vote_score.desc(), Resource.id.desc())
            .limit(limit)
        )
        ids = [row.id for row in self.session.execute(ranked)]
        if not ids:
            return []

        found = {
            resource.id: resource
            for resource in self.session.execute(
                self._with_details().where(Resource.id.in_(ids))
            ).scalars()
        }
        return [found[i] for i in ids if i in found]
