"""
SQLAlchemy engine and session factory.

Usage:
    with session_factory() as session:
        draft = get_draft(session, "deal_wizard_v1")
"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from dealwizard.config import settings
from dealwizard.db.models import Base


def make_engine(url: str | None = None) -> Engine:
    """Create an engine for url (defaults to settings.database_url)."""
    return create_engine(
        url or settings.database_url,
        echo=settings.debug,  # log SQL statements when DEBUG=true
    )


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create the draft tables if they do not exist yet."""
    Base.metadata.create_all(engine)
