"""
Entity store tests.

Covers record creation, update and deletion, persistence of the snapshot,
tolerant loading, transactions, strict reference checking, unique keys
and the status of answered invitations.
"""

import json
import unittest
from unittest import mock

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from class2class.config import STORAGE_KEY
from class2class.core.exceptions import (
    DuplicateRecordError,
    InvitationStateError,
    StaleReferenceError,
    UnknownTableError,
)
from class2class.utils.entity_store import EntityStore
from tests.fixtures import add_partner, add_program, make_storage


class TestRecordLifecycle(unittest.TestCase):

    def setUp(self):
        self.storage = make_storage()
        self.store = EntityStore(self.storage)

    def test_create_assigns_id_and_timestamps(self):
        partner = add_partner(self.store)
        self.assertTrue(partner.id)
        self.assertTrue(partner.created_at)
        self.assertTrue(partner.updated_at)
        self.assertEqual(self.store.get_by_id("partners", partner.id), partner)

    def test_create_keeps_supplied_id_and_created_at(self):
        partner = self.store.create_record(
            "partners",
            {"id": "p-1", "organizationName": "UNICEF", "createdAt": "2024-01-01T00:00:00+00:00"},
        )
        self.assertEqual(partner.id, "p-1")
        self.assertEqual(partner.organization_name, "UNICEF")
        self.assertEqual(partner.created_at, "2024-01-01T00:00:00+00:00")

    def test_returned_rows_are_copies(self):
        partner = add_partner(self.store)
        partner.organization_name = "Changed"
        self.assertEqual(
            self.store.get_by_id("partners", partner.id).organization_name,
            "Save the Children Denmark",
        )
        snapshot = self.store.snapshot()
        snapshot.partners.clear()
        self.assertEqual(len(self.store.get_all("partners")), 1)

    def test_update_merges_fields(self):
        partner = add_partner(self.store)
        updated = self.store.update_record(
            "partners", partner.id, {"mission": "Education for all", "createdAt": "x"}
        )
        self.assertEqual(updated.mission, "Education for all")
        self.assertEqual(updated.organization_name, "Save the Children Denmark")
        self.assertEqual(updated.created_at, partner.created_at)

    def test_update_unknown_or_invalid_id_returns_none(self):
        add_partner(self.store)
        self.assertIsNone(self.store.update_record("partners", "missing", {"mission": "x"}))
        self.assertIsNone(self.store.update_record("partners", None, {"mission": "x"}))
        self.assertIsNone(self.store.update_record("partners", 42, {"mission": "x"}))

    def test_delete(self):
        partner = add_partner(self.store)
        self.assertTrue(self.store.delete_record("partners", partner.id))
        self.assertFalse(self.store.delete_record("partners", partner.id))
        self.assertEqual(self.store.get_all("partners"), [])

    def test_unknown_table(self):
        with self.assertRaises(UnknownTableError):
            self.store.get_all("schools")
        with self.assertRaises(UnknownTableError):
            self.store.create_record("schools", {"name": "x"})

    def test_invalid_record_raises_validation_error(self):
        with self.assertRaises(ValidationError):
            self.store.create_record("programs", {"partner_id": "p-1"})

    def test_find_records(self):
        add_partner(self.store, name="A", country="DK")
        add_partner(self.store, name="B", country="KE")
        found = self.store.find_records("partners", country="KE")
        self.assertEqual([p.organization_name for p in found], ["B"])


class TestPersistence(unittest.TestCase):

    def setUp(self):
        self.storage = make_storage()
        self.store = EntityStore(self.storage)

    def test_snapshot_uses_camel_case_keys(self):
        add_partner(self.store)
        blob = json.loads(self.storage.get_item(STORAGE_KEY))
        self.assertIn("programPartners", blob)
        self.assertIn("institutionTeachers", blob)
        self.assertEqual(blob["partners"][0]["organizationName"], "Save the Children Denmark")

    def test_new_instance_reads_persisted_rows(self):
        partner = add_partner(self.store)
        other = EntityStore(self.storage)
        self.assertEqual(other.get_by_id("partners", partner.id), partner)

    def test_refresh_picks_up_other_instance_writes(self):
        other = EntityStore(self.storage)
        partner = add_partner(other)
        self.assertIsNone(self.store.get_by_id("partners", partner.id))
        self.store.refresh()
        self.assertIsNotNone(self.store.get_by_id("partners", partner.id))

    def test_corrupt_snapshot_loads_empty(self):
        self.storage.set_item(STORAGE_KEY, "{not json")
        with self.assertLogs("class2class.utils.entity_store", level="WARNING"):
            store = EntityStore(self.storage)
        self.assertEqual(store.get_all("partners"), [])

    def test_partial_snapshot_fills_missing_tables(self):
        self.storage.set_item(
            STORAGE_KEY,
            json.dumps(
                {
                    "partners": [
                        {"id": "p-1", "organizationName": "UNICEF"},
                        {"id": "p-2"},
                    ]
                }
            ),
        )
        store = EntityStore(self.storage)
        self.assertEqual([p.id for p in store.get_all("partners")], ["p-1"])
        self.assertEqual(store.get_all("programs"), [])
        self.assertEqual(store.get_all("invitations"), [])

    def test_write_failure_is_logged_not_raised(self):
        with mock.patch.object(
            self.storage, "set_item", side_effect=SQLAlchemyError("disk full")
        ):
            with self.assertLogs("class2class.utils.entity_store", level="WARNING"):
                partner = add_partner(self.store)
        self.assertIsNotNone(self.store.get_by_id("partners", partner.id))

    def test_reset(self):
        add_partner(self.store)
        self.store.reset()
        self.assertEqual(self.store.get_all("partners"), [])
        self.assertEqual(EntityStore(self.storage).get_all("partners"), [])


class TestTransactions(unittest.TestCase):

    def setUp(self):
        self.storage = make_storage()
        self.store = EntityStore(self.storage)

    def test_batch_is_written_once(self):
        with mock.patch.object(self.storage, "set_item", wraps=self.storage.set_item) as spy:
            with self.store.transaction():
                add_partner(self.store, name="A")
                add_partner(self.store, name="B")
            self.assertEqual(spy.call_count, 1)
        self.assertEqual(len(EntityStore(self.storage).get_all("partners")), 2)

    def test_failed_batch_rolls_back(self):
        add_partner(self.store, name="Kept")
        with self.assertRaises(RuntimeError):
            with self.store.transaction():
                add_partner(self.store, name="Dropped")
                raise RuntimeError("boom")
        names = [p.organization_name for p in self.store.get_all("partners")]
        self.assertEqual(names, ["Kept"])
        persisted = [p.organization_name for p in EntityStore(self.storage).get_all("partners")]
        self.assertEqual(persisted, ["Kept"])

    def test_nested_transaction_joins_outer(self):
        with mock.patch.object(self.storage, "set_item", wraps=self.storage.set_item) as spy:
            with self.store.transaction():
                with self.store.transaction():
                    add_partner(self.store, name="A")
                add_partner(self.store, name="B")
            self.assertEqual(spy.call_count, 1)


class TestReferences(unittest.TestCase):

    def test_dangling_reference_is_logged_by_default(self):
        store = EntityStore(make_storage())
        with self.assertLogs("class2class.utils.entity_store", level="WARNING"):
            program = store.create_record("programs", {"partner_id": "ghost", "name": "P"})
        self.assertIsNotNone(store.get_by_id("programs", program.id))

    def test_strict_mode_rejects_dangling_reference(self):
        store = EntityStore(make_storage(), strict_references=True)
        with self.assertRaises(StaleReferenceError) as ctx:
            store.create_record("programs", {"partner_id": "ghost", "name": "P"})
        self.assertEqual(ctx.exception.table, "partners")
        self.assertEqual(store.get_all("programs"), [])


class TestUniqueKeys(unittest.TestCase):

    def setUp(self):
        self.storage = make_storage()
        self.store = EntityStore(self.storage)
        self.host = add_partner(self.store)
        self.guest = add_partner(self.store, name="UNICEF", country="US")
        self.program = add_program(self.store, self.host)

    def relationships(self):
        return self.store.find_records(
            "program_partners", program_id=self.program.id, partner_id=self.guest.id
        )

    def invitation(self, token):
        return {
            "invitation_type": "co_partner",
            "program_id": self.program.id,
            "recipient_email": "x@unicef.org",
            "token": token,
            "expires_at": "2030-01-01T00:00:00+00:00",
            "metadata": {"partner_id": self.guest.id},
            "proposed_role": "advisor",
        }

    def test_second_relationship_for_pair_is_rejected(self):
        data = {"program_id": self.program.id, "partner_id": self.guest.id, "role": "advisor"}
        self.store.create_record("program_partners", data)
        with self.assertRaises(DuplicateRecordError) as ctx:
            self.store.create_record("program_partners", data)
        self.assertEqual(ctx.exception.table, "program_partners")
        self.assertEqual(len(self.relationships()), 1)
        self.assertEqual(
            len(EntityStore(self.storage).find_records(
                "program_partners", program_id=self.program.id, partner_id=self.guest.id
            )),
            1,
        )

    def test_update_cannot_move_relationship_onto_existing_pair(self):
        other = add_partner(self.store, name="Plan International", country="GB")
        self.store.create_record(
            "program_partners",
            {"program_id": self.program.id, "partner_id": self.guest.id, "role": "advisor"},
        )
        moved = self.store.create_record(
            "program_partners",
            {"program_id": self.program.id, "partner_id": other.id, "role": "sponsor"},
        )
        with self.assertRaises(DuplicateRecordError):
            self.store.update_record("program_partners", moved.id, {"partner_id": self.guest.id})
        self.assertEqual(self.store.get_by_id("program_partners", moved.id).partner_id, other.id)

    def test_updating_own_row_keeps_its_key(self):
        relationship = self.store.create_record(
            "program_partners",
            {"program_id": self.program.id, "partner_id": self.guest.id, "role": "advisor"},
        )
        updated = self.store.update_record(
            "program_partners", relationship.id, {"status": "accepted"}
        )
        self.assertEqual(updated.status, "accepted")

    def test_invitation_tokens_are_unique(self):
        self.store.create_record("invitations", self.invitation("same"))
        with self.assertRaises(DuplicateRecordError):
            self.store.create_record("invitations", self.invitation("same"))
        self.assertEqual(len(self.store.find_records("invitations", token="same")), 1)

    def test_duplicate_inside_transaction_rolls_back_batch(self):
        with self.assertRaises(DuplicateRecordError):
            with self.store.transaction():
                self.store.create_record("invitations", self.invitation("t-1"))
                self.store.create_record("invitations", self.invitation("t-1"))
        self.assertEqual(self.store.get_all("invitations"), [])


class TestInvitationStatusGuard(unittest.TestCase):

    def setUp(self):
        self.store = EntityStore(make_storage())
        host = add_partner(self.store)
        guest = add_partner(self.store, name="UNICEF", country="US")
        program = add_program(self.store, host)
        self.invitation = self.store.create_record(
            "invitations",
            {
                "invitation_type": "co_partner",
                "program_id": program.id,
                "recipient_email": "x@unicef.org",
                "token": "t-1",
                "expires_at": "2030-01-01T00:00:00+00:00",
                "metadata": {"partner_id": guest.id},
                "proposed_role": "advisor",
            },
        )

    def test_answered_invitation_cannot_return_to_pending(self):
        self.store.update_record("invitations", self.invitation.id, {"status": "accepted"})
        with self.assertRaises(InvitationStateError):
            self.store.update_record("invitations", self.invitation.id, {"status": "pending"})
        with self.assertRaises(InvitationStateError):
            self.store.update_record("invitations", self.invitation.id, {"status": "declined"})
        self.assertEqual(self.store.get_by_id("invitations", self.invitation.id).status, "accepted")

    def test_answered_invitation_accepts_other_updates(self):
        self.store.update_record("invitations", self.invitation.id, {"status": "declined"})
        updated = self.store.update_record(
            "invitations", self.invitation.id, {"viewedAt": "2024-05-01T00:00:00+00:00"}
        )
        self.assertEqual(updated.status, "declined")
        self.assertEqual(updated.viewed_at, "2024-05-01T00:00:00+00:00")


if __name__ == "__main__":
    unittest.main()
