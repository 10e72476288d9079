import enum

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Table, ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


class ResourceType(str, enum.Enum):
    LINK = "link"
    PDF = "pdf"
    ARTICLE = "article"
    PODCAST = "podcast"
    TIP = "tip"
    BOOK = "book"
    VIDEO = "video"
    MOVIE = "movie"
    TV_SERIES = "tv_series"


class ResourceStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _sql_in(values) -> str:
    return ", ".join(f"'{v.value}'" for v in values)


# Association table for resource tags (many-to-many)
resource_tags = Table(
    'resource_tags',
    Base.metadata,
    Column('resource_id', Integer, ForeignKey('resources.id', ondelete='CASCADE'), primary_key=True),
    Column('tag_id', Integer, ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True)
)

class Resource(Base):
    __tablename__ = 'resources'
    __table_args__ = (
        CheckConstraint(f"resource_type IN ({_sql_in(ResourceType)})", name='valid_type'),
        CheckConstraint(f"status IN ({_sql_in(ResourceStatus)})", name='valid_status'),
        Index('idx_resources_created_at', 'created_at'),
        Index('idx_resources_vote_score', 'vote_score'),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    url = Column(Text, nullable=True)
    resource_type = Column(String(20), nullable=False, default=ResourceType.LINK.value)
    # Categories referenced by resources cannot be deleted
    category_id = Column(Integer, ForeignKey('categories.id', ondelete='RESTRICT'), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=ResourceStatus.PENDING.value, index=True)
    vote_score = Column(Integer, nullable=False, default=0)
    submitted_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    approved_at = Column(DateTime, nullable=True)

    # Relationships
    category = relationship('Category', back_populates='resources')
    tags = relationship(
        'Tag', secondary=resource_tags, back_populates='resources',
        order_by='Tag.name', passive_deletes=True
    )

class Tag(Base):
    __tablename__ = 'tags'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    resources = relationship(
        'Resource', secondary=resource_tags, back_populates='tags', passive_deletes=True
    )

class Category(Base):
    __tablename__ = 'categories'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    resources = relationship('Resource', back_populates='category', passive_deletes='all')
