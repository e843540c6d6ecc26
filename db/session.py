"""SQLAlchemy session factory for the annotation store."""

from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``; sessions never autoflush or autocommit."""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)
