"""Key-value storage over SQLAlchemy.

This module provides the durable medium the entity store and session store
write their serialized blobs into. It mirrors a browser ``localStorage``:
string keys, string values, whole-value replacement.
"""

import logging
from datetime import datetime
from typing import Optional

import pytz
from sqlalchemy.orm import sessionmaker

from class2class.models.storage_entry import StorageEntryModel

logger = logging.getLogger(__name__)


class KeyValueStorage:
    """Stores string blobs under string keys using SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker):
        """Initialize KeyValueStorage.

        Args:
            session_factory: SQLAlchemy session factory bound to the medium.
        """
        self.session_factory = session_factory

    def get_item(self, key: str) -> Optional[str]:
        """Read the value stored under ``key``.

        Returns:
            The stored string, or None if the key is absent.
        """
        with self.session_factory() as db:
            model = (
                db.query(StorageEntryModel)
                .filter(StorageEntryModel.key == key)
                .first()
            )
            return model.value if model else None

    def set_item(self, key: str, value: str) -> None:
        """Replace the value stored under ``key``.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: If the write fails.
        """
        now = datetime.now(pytz.utc).isoformat()
        with self.session_factory() as db:
            model = (
                db.query(StorageEntryModel)
                .filter(StorageEntryModel.key == key)
                .first()
            )
            if model:
                model.value = value
                model.updated_at = now
            else:
                db.add(StorageEntryModel(key=key, value=value, updated_at=now))
            db.commit()
        logger.debug("Stored %d characters under %s", len(value), key)

    def remove_item(self, key: str) -> None:
        with self.session_factory() as db:
            db.query(StorageEntryModel).filter(StorageEntryModel.key == key).delete()
            db.commit()
