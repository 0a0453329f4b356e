"""
Database connection and session management.
Uses SQLAlchemy for Postgres (Supabase) in production and SQLite locally.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from storefront.config import get_config
from storefront.logger import get_logger

logger = get_logger("database")

DATABASE_URL = get_config().database_url

# Base class for all our database models (must be defined before engine)
Base = declarative_base()


def make_engine(url: str):
    """Create an engine suited to the URL's backend."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    # Use NullPool for Supabase transaction/session pooler: the pooler
    # manages connections itself.
    return create_engine(url, pool_pre_ping=True, poolclass=NullPool)


try:
    engine = make_engine(DATABASE_URL)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
except Exception as e:
    logger.warning(f"Failed to create DB engine: {e}; DB features disabled")
    engine = None
    SessionLocal = None


def get_db():
    """
    Dependency function that provides a database session.
    """
    if SessionLocal is None:
        raise RuntimeError("Database is not configured (set DATABASE_URL)")
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
