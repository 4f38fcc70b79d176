"""Program management utilities."""

import logging
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel

from class2class.schemas.base import utc_now_iso
from class2class.schemas.program import Program
from class2class.utils.entity_store import EntityStore
from class2class.utils.invitation_manager import default_permissions

logger = logging.getLogger(__name__)

# Child tables removed with their program, in deletion order
CASCADE_TABLES = (
    "program_partners",
    "coordinators",
    "institution_teachers",
    "institutions",
    "program_projects",
    "program_templates",
    "invitations",
    "activities",
)


class ProgramManager:
    """Creates programs with their host relationship and deletes them with all children."""

    def __init__(self, store: EntityStore):
        self.store = store

    def create_program(
        self,
        partner_id: str,
        data: Union[Mapping[str, Any], BaseModel],
        created_by: str = "",
    ) -> Program:
        """Create a program hosted by ``partner_id``.

        The host relationship is written in the same transaction, accepted and
        holding every permission.

        Args:
            partner_id: The hosting partner.
            data: Program fields by name or camelCase alias; ``name`` is required.
            created_by: User id of the creator.

        Returns:
            The stored program.
        """
        fields = data.model_dump(exclude_unset=True) if isinstance(data, BaseModel) else dict(data)
        fields["partner_id"] = partner_id
        if created_by:
            fields.pop("createdBy", None)
            fields["created_by"] = created_by

        name = fields.get("name", "")
        if not fields.get("display_title") and not fields.get("displayTitle"):
            host = self.store.get_by_id("partners", partner_id)
            fields["display_title"] = f"{host.organization_name}: {name}" if host else name

        now = utc_now_iso()
        with self.store.transaction():
            program = self.store.create_record("programs", fields)
            self.store.create_record(
                "program_partners",
                {
                    "program_id": program.id,
                    "partner_id": partner_id,
                    "role": "host",
                    "permissions": default_permissions("host"),
                    "invited_by": created_by,
                    "invited_at": now,
                    "status": "accepted",
                    "accepted_at": now,
                },
            )

        logger.info("Created program %s for partner %s", program.id, partner_id)
        return program

    def get_program(self, program_id: str) -> Optional[Program]:
        return self.store.get_by_id("programs", program_id)

    def delete_program(self, program_id: str) -> bool:
        """Delete a program and every row that belongs to it.

        Returns:
            True if the program existed.
        """
        program = self.store.get_by_id("programs", program_id)
        if program is None:
            return False

        institution_ids = {
            institution.id
            for institution in self.store.find_records("institutions", program_id=program_id)
        }
        removed = 0
        with self.store.transaction():
            for table in CASCADE_TABLES:
                for row in self.store.get_all(table):
                    owned = row.program_id == program_id
                    if table == "institution_teachers":
                        owned = owned or row.institution_id in institution_ids
                    if owned and self.store.delete_record(table, row.id):
                        removed += 1
            self.store.delete_record("programs", program_id)

        logger.info("Deleted program %s and %d related rows", program_id, removed)
        return True
