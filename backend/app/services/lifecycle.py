"""
Resource lifecycle engine.

Orchestrates submission, editing, moderation, deletion and voting. Each
operation runs in exactly one transaction, so a resource is never committed
without its tags (or with half of them). Database errors roll the whole
operation back and surface as PersistenceError; nothing is retried here.

Moderation state machine: pending may become approved or rejected, and a
reviewed resource may be re-reviewed either way, but nothing goes back to
pending.
Entering ``approved`` stamps ``approved_at``; leaving it does not clear it.
"""
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from app.database import unit_of_work
from app.exceptions import (
    InvalidDecisionError, InvalidTransitionError, InvalidVoteError
)
from app.models import Resource, ResourceStatus
from app.schemas import ResourceCreate, ResourceResponse, ResourceUpdate
from app.services.resources import ResourceRepository
from app.services.tags import TagRepository, normalize_tags

logger = logging.getLogger(__name__)

VOTE_DELTAS = {"up": 1, "down": -1}
MODERATION_DECISIONS = (ResourceStatus.APPROVED.value, ResourceStatus.REJECTED.value)


def _status_value(status) -> str:
    return getattr(status, "value", status)


def check_transition(current: str, target: str) -> None:
    """Raise InvalidTransitionError if ``current -> target`` is not allowed."""
    if target == ResourceStatus.PENDING.value and current != ResourceStatus.PENDING.value:
        raise InvalidTransitionError()


class ResourceLifecycleEngine:
    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = datetime.utcnow):
        self.session_factory = session_factory
        self.clock = clock

    def _unit_of_work(self, operation: str):
        return unit_of_work(self.session_factory, operation)

    def _repositories(self, session: Session):
        return ResourceRepository(session, clock=self.clock), TagRepository(session)

    @staticmethod
    def _to_response(resource: Optional[Resource]) -> Optional[ResourceResponse]:
        if resource is None:
            return None
        return ResourceResponse.model_validate(resource)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, resource_id: int) -> Optional[ResourceResponse]:
        with self._unit_of_work("fetch resource") as session:
            resources, _ = self._repositories(session)
            return self._to_response(resources.get(resource_id))

    def list(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[ResourceResponse]:
        with self._unit_of_work("fetch resources") as session:
            resources, _ = self._repositories(session)
            status = _status_value(status) if status else None
            return [self._to_response(r) for r in resources.list(status, limit, offset)]

    def related(self, resource_id: int, limit: int = 6) -> List[ResourceResponse]:
        with self._unit_of_work("fetch related resources") as session:
            resources, _ = self._repositories(session)
            return [self._to_response(r) for r in resources.related(resource_id, limit)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def submit(
        self,
        fields: ResourceCreate,
        tag_names: Optional[Iterable[str]] = None,
        submitted_by: Optional[str] = None,
    ) -> ResourceResponse:
        """
        Create a pending resource together with its tags.

        ``tag_names`` defaults to ``fields.tags``. ``submitted_by`` is only
        used when the payload does not carry its own attribution.
        """
        names = normalize_tags(fields.tags if tag_names is None else tag_names)
        if submitted_by and not fields.submitted_by:
            fields = fields.model_copy(update={"submitted_by": submitted_by})

        with self._unit_of_work("create resource") as session:
            resources, tags = self._repositories(session)
            created = resources.create(fields)
            tags.replace_tags_for_resource(created.id, names)
            result = self._to_response(resources.get(created.id))

        logger.info(f"Resource {result.id} submitted with {len(names)} tag(s), awaiting moderation")
        return result

    def edit(
        self,
        resource_id: int,
        changes: ResourceUpdate,
        tag_names: Optional[Iterable[str]] = None,
    ) -> Optional[ResourceResponse]:
        """
        Apply a partial update and, when ``tag_names`` is given, replace the
        tag set. Omitting ``tag_names`` leaves the existing tags untouched.

        Returns None if the resource does not exist or there is nothing to
        change.
        """
        names = normalize_tags(tag_names) if tag_names is not None else None
        supplied = changes.changes()
        if not supplied and names is None:
            return None

        with self._unit_of_work("update resource") as session:
            resources, tags = self._repositories(session)

            if "status" in supplied:
                current = session.execute(
                    select(Resource.status).where(Resource.id == resource_id).with_for_update()
                ).scalar_one_or_none()
                if current is None:
                    return None
                check_transition(current, supplied["status"])

            if supplied:
                if resources.update(resource_id, changes) is None:
                    return None
            elif resources.get(resource_id) is None:
                return None

            if names is not None:
                tags.replace_tags_for_resource(resource_id, names)
            result = self._to_response(resources.get(resource_id))

        logger.info(f"Resource {resource_id} updated: {sorted(supplied)}"
                    + (f", tags={names}" if names is not None else ""))
        return result

    def moderate(self, resource_id: int, decision) -> Optional[ResourceResponse]:
        """Approve or reject a resource."""
        decision = _status_value(decision)
        if decision not in MODERATION_DECISIONS:
            raise InvalidDecisionError()

        result = self.edit(resource_id, ResourceUpdate(status=decision))
        if result is not None:
            logger.info(f"Resource {resource_id} {decision}")
        return result

    def remove(self, resource_id: int) -> bool:
        with self._unit_of_work("delete resource") as session:
            resources, _ = self._repositories(session)
            deleted = resources.delete(resource_id)

        if deleted:
            logger.info(f"Resource {resource_id} deleted")
        return deleted

    def vote(self, resource_id: int, direction: str) -> Optional[ResourceResponse]:
        """Vote an approved resource up or down. Anything not approved is treated as missing."""
        delta = VOTE_DELTAS.get(direction)
        if delta is None:
            raise InvalidVoteError()

        with self._unit_of_work("vote on resource") as session:
            resources, _ = self._repositories(session)
            return self._to_response(resources.increment_vote(resource_id, delta))
