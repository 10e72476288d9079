"""
Read-only operational rollup for the admin dashboard.
"""
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from app.database import unit_of_work
from app.models import Category, Resource, ResourceStatus, Tag
from app.schemas import DashboardStats, DashboardSummary, RecentResource


class DashboardAggregator:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def summary(self, recent_limit: int = 10) -> DashboardSummary:
        with unit_of_work(self.session_factory, "load dashboard data") as session:
            by_status = dict(
                session.execute(
                    select(Resource.status, func.count(Resource.id)).group_by(Resource.status)
                ).all()
            )
            stats = DashboardStats(
                pending=by_status.get(ResourceStatus.PENDING.value, 0),
                approved=by_status.get(ResourceStatus.APPROVED.value, 0),
                rejected=by_status.get(ResourceStatus.REJECTED.value, 0),
                total=sum(by_status.values()),
                categories=session.execute(select(func.count(Category.id))).scalar_one(),
                tags=session.execute(select(func.count(Tag.id))).scalar_one(),
            )

            recent = session.execute(
                select(
                    Resource.id,
                    Resource.title,
                    Resource.resource_type,
                    Resource.status,
                    Resource.vote_score,
                    Category.name.label("category_name"),
                    Resource.submitted_by,
                    Resource.created_at,
                )
                .outerjoin(Category, Resource.category_id == Category.id)
                .order_by(Resource.created_at.desc(), Resource.id.desc())
                .limit(recent_limit)
            )
            recent_resources = [RecentResource(**row._mapping) for row in recent]

        return DashboardSummary(stats=stats, recent_resources=recent_resources)
