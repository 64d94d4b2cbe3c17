"""
SQL-backed draft store.

Implements DraftStore on top of the repository functions in
dealwizard.db.repositories. Each call runs in its own short transaction.
"""

import logging

from sqlalchemy import Engine

from dealwizard.adapters.base import DraftStore
from dealwizard.db.repositories import delete_draft, get_draft, upsert_draft
from dealwizard.db.session import init_db, make_engine, make_session_factory

logger = logging.getLogger(__name__)


class SqlDraftStore(DraftStore):
    """Draft store persisting payloads in the ``wizard_drafts`` table."""

    def __init__(self, engine: Engine | None = None, *, create_tables: bool = True) -> None:
        self.engine = engine or make_engine()
        self._session_factory = make_session_factory(self.engine)
        if create_tables:
            init_db(self.engine)

    def load(self, key: str) -> str | None:
        with self._session_factory() as session:
            draft = get_draft(session, key)
            return draft.payload if draft else None

    def save(self, key: str, payload: str) -> None:
        with self._session_factory.begin() as session:
            upsert_draft(session, key=key, payload=payload)

    def clear(self, key: str) -> None:
        with self._session_factory.begin() as session:
            delete_draft(session, key)
