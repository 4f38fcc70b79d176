"""Storage entry database model.

This module defines the key-value row that holds serialized blobs such as the
table snapshot and the current user session.
"""

from sqlalchemy import Column, String, Text
from .base import Base


class StorageEntryModel(Base):
    """Key-value storage database model."""

    __tablename__ = "storage_entries"

    key = Column(String, primary_key=True, index=True)
    value = Column(Text, nullable=False)  # serialized JSON blob
    updated_at = Column(String, nullable=False)  # ISO format string
