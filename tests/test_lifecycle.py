import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.database import transaction
from app.exceptions import (
    InvalidDecisionError, InvalidTagError, InvalidTransitionError, InvalidVoteError, PersistenceError
)
from app.models import Resource, Tag, resource_tags
from app.schemas import ResourceCreate, ResourceUpdate
from app.services.tags import TagRepository


def _count(session_factory, model_or_table):
    with transaction(session_factory) as session:
        return session.execute(select(func.count()).select_from(model_or_table)).scalar_one()


def test_sleep_guide_scenario(lifecycle, category_id):
    resource = lifecycle.submit(
        ResourceCreate(title="Sleep Guide", resource_type="article", tags=["baby", "sleep"])
    )
    assert resource.status == "pending"
    assert resource.tag_names == ["baby", "sleep"]

    approved = lifecycle.moderate(resource.id, "approved")
    assert approved.status == "approved"
    assert approved.approved_at is not None

    voted = lifecycle.vote(resource.id, "up")
    assert voted.vote_score == 1

    edited = lifecycle.edit(resource.id, ResourceUpdate(category_id=category_id))
    assert edited.category_id == category_id
    assert edited.category.name == "Sleep"
    assert edited.tag_names == ["baby", "sleep"]
    assert edited.vote_score == 1


def test_submit_ignores_status_in_payload(lifecycle):
    payload = ResourceCreate.model_validate({"title": "Sneaky", "status": "approved"})
    assert lifecycle.submit(payload).status == "pending"


def test_submit_deduplicates_tags(lifecycle, session_factory):
    resource = lifecycle.submit(ResourceCreate(title="Baby", tags=["Baby", "baby", " BABY ", ""]))
    assert resource.tag_names == ["baby"]
    assert _count(session_factory, resource_tags) == 1


def test_submit_attribution(lifecycle):
    anonymous = lifecycle.submit(ResourceCreate(title="Anon"))
    signed = lifecycle.submit(ResourceCreate(title="Mine"), submitted_by="parent@example.com")
    explicit = lifecycle.submit(
        ResourceCreate(title="Alias", submitted_by="Mor til to"), submitted_by="parent@example.com"
    )

    assert anonymous.submitted_by is None
    assert signed.submitted_by == "parent@example.com"
    assert explicit.submitted_by == "Mor til to"


def test_submit_rolls_back_when_tagging_fails(lifecycle, session_factory, monkeypatch):
    def broken_ensure(self, name):
        raise OperationalError("INSERT INTO tags", {}, Exception("connection lost"))

    monkeypatch.setattr(TagRepository, "ensure_tag", broken_ensure)

    with pytest.raises(PersistenceError):
        lifecycle.submit(ResourceCreate(title="Half done", tags=["baby"]))

    assert _count(session_factory, Resource) == 0
    assert _count(session_factory, Tag) == 0


def test_invalid_tags_fail_before_any_write(lifecycle, session_factory):
    with pytest.raises(InvalidTagError):
        lifecycle.submit(ResourceCreate(title="Too long", tags=["x" * 80]))
    assert _count(session_factory, Resource) == 0


def test_edit_rolls_back_tag_replacement(lifecycle, make_resource, monkeypatch):
    resource = make_resource(tags=["baby", "sleep"])
    original = TagRepository.ensure_tag
    calls = []

    def flaky_ensure(self, name):
        calls.append(name)
        if len(calls) == 2:
            raise OperationalError("INSERT INTO tags", {}, Exception("connection lost"))
        return original(self, name)

    monkeypatch.setattr(TagRepository, "ensure_tag", flaky_ensure)
    with pytest.raises(PersistenceError):
        lifecycle.edit(resource.id, ResourceUpdate(title="Renamed"), ["routine", "night"])
    monkeypatch.undo()

    unchanged = lifecycle.get(resource.id)
    assert unchanged.title == "Sleep Guide"
    assert unchanged.tag_names == ["baby", "sleep"]


def test_edit_replaces_tags_when_given(lifecycle, make_resource):
    resource = make_resource(tags=["baby", "sleep"])

    edited = lifecycle.edit(resource.id, ResourceUpdate(), ["Routine", "sleep"])
    assert edited.tag_names == ["routine", "sleep"]

    cleared = lifecycle.edit(resource.id, ResourceUpdate(), [])
    assert cleared.tag_names == []


def test_edit_without_changes_returns_none(lifecycle, make_resource):
    resource = make_resource()
    assert lifecycle.edit(resource.id, ResourceUpdate()) is None


def test_edit_missing_resource(lifecycle):
    assert lifecycle.edit(999, ResourceUpdate(title="Ghost")) is None
    assert lifecycle.edit(999, ResourceUpdate(), ["ghost"]) is None
    assert lifecycle.edit(999, ResourceUpdate(status="approved")) is None


def test_approved_at_survives_rejection_and_moves_on_reapproval(lifecycle, make_resource):
    resource = make_resource()

    first = lifecycle.moderate(resource.id, "approved").approved_at
    assert first is not None

    rejected = lifecycle.moderate(resource.id, "rejected")
    assert rejected.status == "rejected"
    assert rejected.approved_at == first

    again = lifecycle.moderate(resource.id, "approved").approved_at
    assert again > first


def test_pending_resource_can_be_rejected_directly(lifecycle, make_resource):
    resource = make_resource()
    rejected = lifecycle.moderate(resource.id, "rejected")
    assert rejected.status == "rejected"
    assert rejected.approved_at is None


def test_moderate_rejects_other_decisions(lifecycle, make_resource):
    resource = make_resource()
    for decision in ("pending", "published", ""):
        with pytest.raises(InvalidDecisionError):
            lifecycle.moderate(resource.id, decision)
    assert lifecycle.get(resource.id).status == "pending"


def test_no_transition_back_to_pending(lifecycle, make_resource):
    resource = make_resource()
    lifecycle.moderate(resource.id, "approved")

    with pytest.raises(InvalidTransitionError):
        lifecycle.edit(resource.id, ResourceUpdate(status="pending", title="Sneaky"))

    current = lifecycle.get(resource.id)
    assert current.status == "approved"
    assert current.title == "Sleep Guide"


@pytest.mark.parametrize("status", [None, "rejected"])
def test_vote_requires_approval(lifecycle, make_resource, status):
    resource = make_resource()
    if status:
        lifecycle.moderate(resource.id, status)

    assert lifecycle.vote(resource.id, "up") is None
    assert lifecycle.vote(resource.id, "down") is None
    assert lifecycle.get(resource.id).vote_score == 0


def test_vote_up_then_down_restores_score(lifecycle, make_resource):
    resource = make_resource()
    lifecycle.moderate(resource.id, "approved")

    assert lifecycle.vote(resource.id, "up").vote_score == 1
    assert lifecycle.vote(resource.id, "down").vote_score == 0


def test_vote_direction_is_validated(lifecycle, make_resource):
    resource = make_resource()
    with pytest.raises(InvalidVoteError):
        lifecycle.vote(resource.id, "sideways")


def test_vote_on_missing_resource(lifecycle):
    assert lifecycle.vote(12345, "up") is None


def test_remove_keeps_unrelated_data(lifecycle, make_resource, session_factory):
    doomed = make_resource(title="Doomed", tags=["baby", "sleep"])
    kept = make_resource(title="Kept", tags=["sleep", "routine"])

    assert lifecycle.remove(doomed.id) is True
    assert lifecycle.remove(doomed.id) is False
    assert lifecycle.get(doomed.id) is None

    assert lifecycle.get(kept.id).tag_names == ["routine", "sleep"]
    assert _count(session_factory, resource_tags) == 2
    assert _count(session_factory, Tag) == 3


def test_list_and_related(lifecycle, make_resource):
    first = make_resource(title="First", tags=["sleep"])
    second = make_resource(title="Second", tags=["sleep", "baby"])
    lifecycle.moderate(second.id, "approved")

    assert [r.title for r in lifecycle.list()] == ["Second", "First"]
    assert [r.title for r in lifecycle.list(status="approved")] == ["Second"]
    assert [r.title for r in lifecycle.related(first.id)] == ["Second"]


def test_unknown_category_surfaces_as_persistence_error(lifecycle, session_factory):
    with pytest.raises(PersistenceError):
        lifecycle.submit(ResourceCreate(title="Orphan", category_id=404, tags=["baby"]))
    assert _count(session_factory, Resource) == 0
