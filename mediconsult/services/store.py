"""
Relational store used by the workflow services.

Writes are single-row and go through the current SQLAlchemy session; nothing
is durable until ``commit`` is called, so a caller can group several inserts
into one transaction and roll them back together.
"""
import logging

from mediconsult.extensions import db

logger = logging.getLogger(__name__)


class RelationalStore:
    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session or db.session

    def insert(self, row):
        """Add ``row`` and flush so the database assigns its id."""
        self.session.add(row)
        self.session.flush()
        return row

    def select_by_id(self, model, row_id):
        if row_id is None:
            return None
        return self.session.get(model, row_id)

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()
