"""
Program manager tests.

Programs are created together with their host relationship and deleted
together with every row that belongs to them.
"""

import unittest

from class2class.utils.invitation_manager import InvitationManager
from class2class.utils.program_manager import CASCADE_TABLES, ProgramManager
from tests.fixtures import (
    add_institution,
    add_partner,
    add_program,
    add_project,
    add_teacher,
    make_store,
)


class TestCreateProgram(unittest.TestCase):

    def setUp(self):
        self.store = make_store()
        self.partner = add_partner(self.store)
        self.manager = ProgramManager(self.store)

    def test_host_relationship_is_created(self):
        program = self.manager.create_program(
            self.partner.id, {"name": "Climate Voices"}, created_by="user-1"
        )
        self.assertEqual(program.display_title, "Save the Children Denmark: Climate Voices")
        self.assertEqual(program.created_by, "user-1")
        self.assertEqual(program.status, "draft")

        relationships = self.store.find_records("program_partners", program_id=program.id)
        self.assertEqual(len(relationships), 1)
        host = relationships[0]
        self.assertEqual(host.role, "host")
        self.assertEqual(host.status, "accepted")
        self.assertIsNotNone(host.accepted_at)
        self.assertTrue(all(host.permissions.model_dump().values()))

    def test_explicit_display_title_is_kept(self):
        program = self.manager.create_program(
            self.partner.id, {"name": "Climate Voices", "displayTitle": "Voices"}
        )
        self.assertEqual(program.display_title, "Voices")


class TestDeleteProgram(unittest.TestCase):

    def setUp(self):
        self.store = make_store()
        partner = add_partner(self.store)
        guest = add_partner(self.store, name="UNICEF", country="US")
        self.doomed = add_program(self.store, partner, name="Doomed")
        self.kept = add_program(self.store, partner, name="Kept")
        for program in (self.doomed, self.kept):
            institution = add_institution(self.store, program)
            teacher = add_teacher(self.store, institution)
            add_project(self.store, program, teacher)
            self.store.create_record(
                "program_templates", {"program_id": program.id, "title": "Template"}
            )
            self.store.create_record(
                "activities",
                {"program_id": program.id, "type": "teacher_joined", "actor_name": "Anna"},
            )
        invitations = InvitationManager(self.store)
        invitations.invite_co_partner(self.doomed.id, guest.id, "x@unicef.org", role="advisor")
        invitations.invite_coordinator(self.doomed.id, "c@example.org", "Mette", "Holm", "DK")
        self.manager = ProgramManager(self.store)

    def test_cascade_removes_every_child_row(self):
        self.assertTrue(self.manager.delete_program(self.doomed.id))
        self.assertIsNone(self.store.get_by_id("programs", self.doomed.id))
        for table in CASCADE_TABLES:
            rows = self.store.get_all(table)
            self.assertTrue(
                all(row.program_id != self.doomed.id for row in rows),
                f"{table} still holds rows of the deleted program",
            )

    def test_other_programs_are_untouched(self):
        self.manager.delete_program(self.doomed.id)
        self.assertIsNotNone(self.store.get_by_id("programs", self.kept.id))
        for table in ("program_partners", "institutions", "institution_teachers",
                      "program_projects", "program_templates", "activities"):
            self.assertEqual(len(self.store.find_records(table, program_id=self.kept.id)), 1)

    def test_unknown_program(self):
        self.assertFalse(self.manager.delete_program("missing"))


if __name__ == "__main__":
    unittest.main()
