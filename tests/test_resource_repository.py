import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.database import transaction
from app.models import Resource, Tag, resource_tags
from app.schemas import ResourceCreate, ResourceUpdate
from app.services.resources import ResourceRepository
from app.services.tags import TagRepository


@pytest.fixture
def repo_session(session_factory, clock):
    with transaction(session_factory) as session:
        yield session, ResourceRepository(session, clock=clock)


def test_create_forces_pending(repo_session):
    session, resources = repo_session
    # Extra keys in a submission never make it into the row
    fields = ResourceCreate.model_validate(
        {"title": "Sleep Guide", "resource_type": "article", "status": "approved", "vote_score": 99}
    )
    resource = resources.create(fields)

    assert resource.status == "pending"
    assert resource.vote_score == 0
    assert resource.approved_at is None
    assert resource.created_at is not None


def test_get_returns_empty_tag_list(repo_session):
    _, resources = repo_session
    created = resources.create(ResourceCreate(title="No tags"))
    loaded = resources.get(created.id)

    assert loaded.tags == []
    assert loaded.category is None
    assert resources.get(9999) is None


def test_list_newest_first_with_status_filter(repo_session):
    _, resources = repo_session
    first = resources.create(ResourceCreate(title="First"))
    second = resources.create(ResourceCreate(title="Second"))
    third = resources.create(ResourceCreate(title="Third"))
    resources.update(second.id, ResourceUpdate(status="approved"))

    assert [r.id for r in resources.list()] == [third.id, second.id, first.id]
    assert [r.id for r in resources.list(status="approved")] == [second.id]
    assert [r.id for r in resources.list(limit=1, offset=1)] == [second.id]


def test_update_touches_only_supplied_fields(category_id, repo_session):
    _, resources = repo_session
    created = resources.create(
        ResourceCreate(title="Guide", description="Original", url="https://example.com/guide")
    )

    updated = resources.update(created.id, ResourceUpdate(category_id=category_id))

    assert updated.category_id == category_id
    assert updated.category.name == "Sleep"
    assert updated.title == "Guide"
    assert updated.description == "Original"
    assert updated.url == "https://example.com/guide"


def test_update_explicit_none_clears_field(repo_session):
    _, resources = repo_session
    created = resources.create(ResourceCreate(title="Guide", description="Soon gone"))

    updated = resources.update(created.id, ResourceUpdate(description=None))

    assert updated.description is None
    assert updated.title == "Guide"


def test_update_with_nothing_supplied_is_a_no_op(repo_session):
    _, resources = repo_session
    created = resources.create(ResourceCreate(title="Guide"))

    assert resources.update(created.id, ResourceUpdate()) is None
    assert resources.get(created.id).title == "Guide"


def test_update_missing_resource_returns_none(repo_session):
    _, resources = repo_session
    assert resources.update(4242, ResourceUpdate(title="Nope")) is None


def test_approval_stamps_approved_at(repo_session):
    _, resources = repo_session
    created = resources.create(ResourceCreate(title="Guide"))

    approved = resources.update(created.id, ResourceUpdate(status="approved"))
    stamped = approved.approved_at
    assert stamped is not None

    rejected = resources.update(created.id, ResourceUpdate(status="rejected"))
    assert rejected.approved_at == stamped


def test_increment_vote_only_on_approved(repo_session):
    _, resources = repo_session
    created = resources.create(ResourceCreate(title="Guide"))

    assert resources.increment_vote(created.id, 1) is None
    assert resources.get(created.id).vote_score == 0

    resources.update(created.id, ResourceUpdate(status="approved"))
    assert resources.increment_vote(created.id, 1).vote_score == 1
    assert resources.increment_vote(created.id, -1).vote_score == 0


def test_delete_cascades_tag_links(repo_session):
    session, resources = repo_session
    tags = TagRepository(session)
    doomed = resources.create(ResourceCreate(title="Doomed"))
    kept = resources.create(ResourceCreate(title="Kept"))
    tags.replace_tags_for_resource(doomed.id, ["baby", "sleep"])
    tags.replace_tags_for_resource(kept.id, ["sleep"])

    assert resources.delete(doomed.id) is True
    assert resources.delete(doomed.id) is False

    remaining = session.execute(select(resource_tags.c.resource_id)).scalars().all()
    assert remaining == [kept.id]
    assert session.execute(select(func.count(Tag.id))).scalar_one() == 2
    assert resources.get(kept.id) is not None


def test_unknown_category_is_rejected_by_store(repo_session):
    session, resources = repo_session
    with pytest.raises(IntegrityError):
        resources.create(ResourceCreate(title="Orphan", category_id=777))
    session.rollback()


def test_related_ranks_by_shared_tags(repo_session):
    session, resources = repo_session
    tags = TagRepository(session)
    base = resources.create(ResourceCreate(title="Base"))
    close = resources.create(ResourceCreate(title="Close"))
    loose = resources.create(ResourceCreate(title="Loose"))
    hidden = resources.create(ResourceCreate(title="Hidden"))
    tags.replace_tags_for_resource(base.id, ["baby", "sleep", "nap"])
    tags.replace_tags_for_resource(close.id, ["baby", "sleep"])
    tags.replace_tags_for_resource(loose.id, ["nap"])
    tags.replace_tags_for_resource(hidden.id, ["baby", "sleep", "nap"])
    for r in (close, loose):
        resources.update(r.id, ResourceUpdate(status="approved"))

    assert [r.title for r in resources.related(base.id)] == ["Close", "Loose"]


def test_store_rejects_invalid_status(repo_session):
    session, _ = repo_session
    session.add(Resource(title="Bad", resource_type="link", status="published"))
    with pytest.raises(IntegrityError):
        session.flush()
    session.rollback()
