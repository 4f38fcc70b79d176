"""Shared schema base classes.

Records use snake_case attributes in Python and camelCase keys in the
persisted snapshot and API payloads.
"""

import uuid
from datetime import datetime

import pytz
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    return datetime.now(pytz.utc).isoformat()


class StoreModel(BaseModel):
    """Base for every schema that crosses the storage or API boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Record(StoreModel):
    """A row in one of the store tables."""

    id: str = Field(
        description="The unique identifier of the row.",
        default_factory=lambda: str(uuid.uuid4()),
    )
    created_at: str = Field(
        description="The time when the row was created.",
        default_factory=utc_now_iso,
    )
    updated_at: str = Field(
        description="The time when the row was last updated.",
        default_factory=utc_now_iso,
    )
