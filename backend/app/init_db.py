"""
Database initialization script for the resource directory.
Run this once to create the database tables.
"""
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.database import engine as default_engine, build_session_factory, transaction
from app.models import Base, Category
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"name": "Sleep", "description": "Sleep routines and advice for the whole family"},
    {"name": "Parenting", "description": "Everyday parenting tips and perspectives"},
    {"name": "Health", "description": "Physical and mental health resources"},
    {"name": "Activities", "description": "Things to do together, indoors and out"},
    {"name": "Learning", "description": "Books, courses and educational material"},
    {"name": "Entertainment", "description": "Films, series and podcasts worth the time"},
]


def seed_categories(session_factory: sessionmaker) -> int:
    """Insert any default category that does not exist yet. Returns how many were added."""
    added = 0
    with transaction(session_factory) as db:
        for cat_data in DEFAULT_CATEGORIES:
            existing = db.execute(
                select(Category.id).where(Category.name == cat_data["name"])
            ).scalar_one_or_none()
            if existing is None:
                db.add(Category(**cat_data))
                added += 1
                logger.info(f"Added category: {cat_data['name']}")
    return added


def init_db(engine: Engine = default_engine):
    """Create all database tables and the default categories."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully!")

    seed_categories(build_session_factory(engine))
    logger.info("Default categories added!")

if __name__ == "__main__":
    init_db()
