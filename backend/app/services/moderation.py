"""
Moderation gateway: role checks in front of the lifecycle engine.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from app.exceptions import AuthorizationError
from app.models import ResourceStatus
from app.schemas import ResourceCreate, ResourceResponse, ResourceUpdate
from app.services.lifecycle import ResourceLifecycleEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Already-authenticated identity of whoever is making the request."""

    identity: Optional[str] = None
    is_moderator: bool = False

    @property
    def is_anonymous(self) -> bool:
        return self.identity is None


ANONYMOUS = Caller()


def require_moderator(caller: Caller, action: str) -> None:
    """
    Raise before anything touches the database if the caller may not moderate.

    Args:
        caller: The requesting identity
        action: Short description used in the log and error message

    Raises:
        AuthorizationError: If the caller is not a moderator
    """
    if not caller.is_moderator:
        logger.warning(f"Denied {action} for {caller.identity or 'anonymous caller'}")
        raise AuthorizationError(f"Moderator privileges required to {action}")


class ModerationGateway:
    """
    Anyone may submit, vote and read approved resources. Editing, moderating
    and deleting are reserved for moderators, who also see resources in
    every status.
    """

    def __init__(self, engine: ResourceLifecycleEngine):
        self.engine = engine

    def submit(
        self,
        caller: Caller,
        fields: ResourceCreate,
        tag_names: Optional[Iterable[str]] = None,
    ) -> ResourceResponse:
        return self.engine.submit(fields, tag_names, submitted_by=caller.identity)

    def vote(self, caller: Caller, resource_id: int, direction: str) -> Optional[ResourceResponse]:
        return self.engine.vote(resource_id, direction)

    def get(self, caller: Caller, resource_id: int) -> Optional[ResourceResponse]:
        resource = self.engine.get(resource_id)
        if resource is None:
            return None
        if not caller.is_moderator and resource.status != ResourceStatus.APPROVED:
            return None
        return resource

    def list(
        self,
        caller: Caller,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ResourceResponse]:
        if not caller.is_moderator:
            status = ResourceStatus.APPROVED.value
        return self.engine.list(status, limit, offset)

    def related(self, caller: Caller, resource_id: int, limit: int = 6) -> List[ResourceResponse]:
        # A hidden resource has no neighbours either
        if not caller.is_moderator and self.get(caller, resource_id) is None:
            return []
        return self.engine.related(resource_id, limit)

    def edit(
        self,
        caller: Caller,
        resource_id: int,
        changes: ResourceUpdate,
        tag_names: Optional[Iterable[str]] = None,
    ) -> Optional[ResourceResponse]:
        require_moderator(caller, "edit resources")
        return self.engine.edit(resource_id, changes, tag_names)

    def moderate(self, caller: Caller, resource_id: int, decision: str) -> Optional[ResourceResponse]:
        require_moderator(caller, "moderate resources")
        return self.engine.moderate(resource_id, decision)

    def remove(self, caller: Caller, resource_id: int) -> bool:
        require_moderator(caller, "delete resources")
        return self.engine.remove(resource_id)
