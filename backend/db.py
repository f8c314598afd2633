"""
Optional database setup for greeting records.

Persistence is off unless a database URL is configured. ``init_db`` returns a
session factory (the handle) or None; callers pass that handle to the
record-keeping service and treat None as "not configured".
"""
import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


def init_db(database_url: Optional[str]) -> Optional[sessionmaker]:
    """Connect, ensure tables exist, and return a session factory.

    Returns None when no URL is configured or the database is unreachable, so
    the application keeps running without persistence.
    """
    if not database_url:
        logger.info("Database not configured (no DATABASE_URL). Greeting records disabled.")
        return None

    from repositories import models  # noqa: F401  Ensures models are registered

    connect_args = {}
    if database_url.startswith("sqlite"):
        # check_same_thread=False allows usage across FastAPI threads
        connect_args["check_same_thread"] = False

    try:
        engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        logger.warning("Failed to initialize database; greeting records disabled.", exc_info=True)
        return None

    logger.info("Database initialized and greetings table ensured.")
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)
