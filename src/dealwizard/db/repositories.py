"""
Database repository for draft storage.

All raw database queries live here. The SQL draft store calls these
functions instead of touching SQLAlchemy directly.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from dealwizard.db.models import Draft

logger = logging.getLogger(__name__)


def get_draft(session: Session, key: str) -> Draft | None:
    """Get a draft by its storage key."""
    result = session.execute(select(Draft).where(Draft.key == key))
    return result.scalar_one_or_none()


def upsert_draft(session: Session, *, key: str, payload: str) -> Draft:
    """Create the draft for key, or replace its payload."""
    draft = get_draft(session, key)
    if draft is None:
        draft = Draft(key=key, payload=payload)
        session.add(draft)
        logger.info("Created draft: %s", key)
    else:
        draft.payload = payload
    session.flush()
    return draft


def delete_draft(session: Session, key: str) -> bool:
    """Delete the draft for key. Returns True if a row was removed."""
    result = session.execute(delete(Draft).where(Draft.key == key))
    removed = bool(result.rowcount)
    if removed:
        logger.info("Deleted draft: %s", key)
    return removed
