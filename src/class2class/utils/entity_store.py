"""Entity store module.

This module keeps every program table in memory and writes the complete
table set to the key-value medium after each mutation. Reads never touch the
medium; ``refresh`` reloads it explicitly.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError

from class2class.config import STORAGE_KEY, STRICT_REFERENCES
from class2class.core.exceptions import (
    DuplicateRecordError,
    InvitationStateError,
    StaleReferenceError,
    UnknownTableError,
)
from class2class.schemas.base import Record, utc_now_iso
from class2class.schemas.database import PrototypeDatabase, PrototypeMetadata
from class2class.schemas.invitation import parse_invitation
from class2class.schemas.partner import Partner, PartnerUser
from class2class.schemas.program import (
    CountryCoordinator,
    EducationalInstitution,
    InstitutionTeacher,
    Program,
    ProgramActivity,
    ProgramPartner,
    ProgramProject,
    ProgramProjectTemplate,
)
from class2class.utils.storage import KeyValueStorage

logger = logging.getLogger(__name__)

RecordData = Union[Mapping[str, Any], BaseModel]


@dataclass(frozen=True)
class TableSpec:
    """How rows of one table are built and what they point at."""

    parse: Callable[[Mapping[str, Any]], Record]
    references: Dict[str, str] = field(default_factory=dict)
    unique: Tuple[str, ...] = ()


TABLES: Dict[str, TableSpec] = {
    "partners": TableSpec(Partner.model_validate),
    "partner_users": TableSpec(PartnerUser.model_validate, {"partner_id": "partners"}),
    "programs": TableSpec(Program.model_validate, {"partner_id": "partners"}),
    "program_partners": TableSpec(
        ProgramPartner.model_validate,
        {"program_id": "programs", "partner_id": "partners"},
        unique=("program_id", "partner_id"),
    ),
    "coordinators": TableSpec(
        CountryCoordinator.model_validate, {"program_id": "programs"}
    ),
    "institutions": TableSpec(
        EducationalInstitution.model_validate,
        {"program_id": "programs", "coordinator_id": "coordinators"},
    ),
    "institution_teachers": TableSpec(
        InstitutionTeacher.model_validate,
        {"institution_id": "institutions", "program_id": "programs"},
    ),
    "program_projects": TableSpec(
        ProgramProject.model_validate,
        {"program_id": "programs", "template_id": "program_templates"},
    ),
    "program_templates": TableSpec(
        ProgramProjectTemplate.model_validate, {"program_id": "programs"}
    ),
    "invitations": TableSpec(
        parse_invitation, {"program_id": "programs"}, unique=("token",)
    ),
    "activities": TableSpec(ProgramActivity.model_validate, {"program_id": "programs"}),
}

_STAMPED_FIELDS = ("id", "created_at", "updated_at")


def _merge_with_defaults(data: Any) -> PrototypeDatabase:
    """Build a database from a parsed blob, tolerating missing or bad parts."""
    if not isinstance(data, dict):
        return PrototypeDatabase()

    tables: Dict[str, List[Record]] = {}
    for table, spec in TABLES.items():
        raw_rows = data.get(to_camel(table), data.get(table))
        rows: List[Record] = []
        if isinstance(raw_rows, list):
            for raw in raw_rows:
                if not isinstance(raw, dict):
                    continue
                try:
                    rows.append(spec.parse(raw))
                except (ValidationError, ValueError) as exc:
                    logger.warning(
                        "Skipping unreadable %s row %s: %s", table, raw.get("id"), exc
                    )
        tables[table] = rows

    metadata = PrototypeMetadata()
    if isinstance(data.get("metadata"), dict):
        try:
            metadata = PrototypeMetadata.model_validate(data["metadata"])
        except ValidationError as exc:
            logger.warning("Ignoring unreadable store metadata: %s", exc)

    return PrototypeDatabase(**tables, metadata=metadata)


class _Transaction:
    """Batches store mutations into a single persisted write.

    While active, individual mutations skip the write. The snapshot is
    written once when the block exits cleanly; on error the in-memory tables
    are restored to their state at entry and nothing is written.
    """

    def __init__(self, store: "EntityStore"):
        self.store = store
        self._nested = False
        self._backup: Optional[PrototypeDatabase] = None

    def __enter__(self) -> "EntityStore":
        if self.store._in_transaction:
            self._nested = True
            return self.store
        self._backup = self.store._db.model_copy(deep=True)
        self.store._in_transaction = True
        self.store._dirty = False
        return self.store

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self._nested:
            return False
        self.store._in_transaction = False
        if exc_type is None:
            if self.store._dirty:
                self.store._persist()
        else:
            self.store._db = self._backup
            logger.warning("Rolled back store transaction: %s", exc_val)
        self.store._dirty = False
        return False


class EntityStore:
    """Typed keyed tables persisted as one snapshot in a key-value medium."""

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: str = STORAGE_KEY,
        strict_references: bool = STRICT_REFERENCES,
    ):
        """Initialize EntityStore and load the persisted snapshot.

        Args:
            storage: Durable key-value medium.
            storage_key: Key the snapshot is stored under.
            strict_references: Raise StaleReferenceError for dangling foreign
                keys instead of logging them.
        """
        self.storage = storage
        self.storage_key = storage_key
        self.strict_references = strict_references
        self._in_transaction = False
        self._dirty = False
        self._db = self._load()

    # --- persistence ---

    def _load(self) -> PrototypeDatabase:
        try:
            raw = self.storage.get_item(self.storage_key)
        except SQLAlchemyError as exc:
            logger.warning("Failed to load program store: %s", exc)
            return PrototypeDatabase()
        if not raw:
            return PrototypeDatabase()
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Failed to parse program store snapshot: %s", exc)
            return PrototypeDatabase()
        return _merge_with_defaults(parsed)

    def _persist(self) -> None:
        if self._in_transaction:
            self._dirty = True
            return
        try:
            self.storage.set_item(
                self.storage_key, self._db.model_dump_json(by_alias=True)
            )
        except SQLAlchemyError as exc:
            logger.warning("Failed to persist program store: %s", exc)

    def transaction(self) -> _Transaction:
        """Context manager for a batch of related mutations.

        Usage:
            with store.transaction():
                store.create_record("invitations", {...})
                store.update_record("program_partners", rel_id, {...})
                # Both written together, or neither
        """
        return _Transaction(self)

    def refresh(self) -> None:
        """Re-read the persisted snapshot, discarding in-memory state."""
        self._db = self._load()
        logger.debug("Reloaded program store from %s", self.storage_key)

    def reset(self) -> None:
        """Replace every table with an empty one and persist."""
        self._db = PrototypeDatabase()
        self._persist()
        logger.info("Reset program store %s", self.storage_key)

    # --- reads ---

    @property
    def database(self) -> PrototypeDatabase:
        """Detached copy of every table, for selectors."""
        return self._db.model_copy(deep=True)

    def snapshot(self) -> PrototypeDatabase:
        return self.database

    def _table(self, table: str) -> List[Record]:
        if table not in TABLES:
            raise UnknownTableError(table)
        return getattr(self._db, table)

    def get_all(self, table: str) -> List[Record]:
        return [row.model_copy(deep=True) for row in self._table(table)]

    def get_by_id(self, table: str, record_id: str) -> Optional[Record]:
        for row in self._table(table):
            if row.id == record_id:
                return row.model_copy(deep=True)
        return None

    def find_records(self, table: str, **criteria: Any) -> List[Record]:
        """Return copies of rows whose attributes equal every criterion."""
        return [
            row.model_copy(deep=True)
            for row in self._table(table)
            if all(getattr(row, key, None) == value for key, value in criteria.items())
        ]

    # --- mutations ---

    def _check_references(self, table: str, record: Record) -> None:
        for field_name, target in TABLES[table].references.items():
            value = getattr(record, field_name, None)
            if not value:
                continue
            if any(row.id == value for row in getattr(self._db, target)):
                continue
            if self.strict_references:
                raise StaleReferenceError(target, value, field_name)
            logger.warning(
                "%s row %s: %s references missing %s row %s",
                table,
                record.id,
                field_name,
                target,
                value,
            )

    def _check_unique(
        self, table: str, record: Record, exclude_id: Optional[str] = None
    ) -> None:
        fields = TABLES[table].unique
        if not fields:
            return
        key = tuple(getattr(record, name, None) for name in fields)
        for row in getattr(self._db, table):
            if row.id != exclude_id and tuple(getattr(row, name, None) for name in fields) == key:
                raise DuplicateRecordError(table, fields, key)

    def _check_transition(self, table: str, current: Record, record: Record) -> None:
        # Answered invitations keep their status
        if table != "invitations" or not current.is_terminal:
            return
        if record.status != current.status:
            raise InvitationStateError(
                f"Invitation {current.id} is already {current.status}"
            )

    def create_record(self, table: str, data: RecordData) -> Record:
        """Append a new row and persist.

        Args:
            table: Table key, e.g. ``"programs"``.
            data: Field values by name or camelCase alias. ``id`` and
                ``created_at`` are generated unless provided.

        Returns:
            A copy of the stored row.

        Raises:
            UnknownTableError: If the table key is unknown.
            pydantic.ValidationError: If the data does not fit the table.
            DuplicateRecordError: If the row repeats a unique key, such as a
                second relationship for one (program, partner) pair.
        """
        rows = self._table(table)
        payload = data.model_dump() if isinstance(data, BaseModel) else dict(data)
        now = utc_now_iso()

        if not payload.get("id"):
            payload["id"] = str(uuid.uuid4())
        if payload.get("created_at") is None and payload.get("createdAt") is None:
            payload["created_at"] = now
        payload.pop("updatedAt", None)
        payload["updated_at"] = now

        record = TABLES[table].parse(payload)
        self._check_unique(table, record)
        self._check_references(table, record)
        rows.append(record)
        self._persist()
        logger.debug("Created %s row %s", table, record.id)
        return record.model_copy(deep=True)

    def update_record(
        self, table: str, record_id: Any, updates: RecordData
    ) -> Optional[Record]:
        """Merge ``updates`` into a row and persist.

        Returns:
            A copy of the updated row, or None if no row has that id.

        Raises:
            DuplicateRecordError: If the change repeats a unique key.
            InvitationStateError: If it changes the status of an answered
                invitation.
        """
        rows = self._table(table)
        if not isinstance(record_id, str) or not record_id:
            return None

        index = next((i for i, row in enumerate(rows) if row.id == record_id), None)
        if index is None:
            return None

        current = rows[index]
        names = {
            (info.alias or name): name for name, info in type(current).model_fields.items()
        }
        changes = (
            updates.model_dump(exclude_unset=True)
            if isinstance(updates, BaseModel)
            else dict(updates)
        )
        merged = current.model_dump()
        for key, value in changes.items():
            name = names.get(key, key)
            if name in _STAMPED_FIELDS:
                continue
            merged[name] = value
        merged["updated_at"] = utc_now_iso()

        record = TABLES[table].parse(merged)
        self._check_transition(table, current, record)
        self._check_unique(table, record, record_id)
        self._check_references(table, record)
        rows[index] = record
        self._persist()
        logger.debug("Updated %s row %s", table, record_id)
        return record.model_copy(deep=True)

    def delete_record(self, table: str, record_id: Any) -> bool:
        rows = self._table(table)
        remaining = [row for row in rows if row.id != record_id]
        if len(remaining) == len(rows):
            return False
        setattr(self._db, table, remaining)
        self._persist()
        logger.debug("Deleted %s row %s", table, record_id)
        return True
