"""
Invitation manager tests.

Covers creation of co-partner and coordinator invitations, the
pending -> accepted/declined transitions with their side effects, repeat
answers, stale references and expiry.
"""

import unittest
from datetime import datetime, timedelta

import pytz

from class2class.core.exceptions import InvitationStateError, StaleReferenceError
from class2class.schemas.invitation import CoordinatorInvitation, CoPartnerInvitation
from class2class.utils.invitation_manager import (
    InvitationManager,
    default_permissions,
    is_expired,
)
from tests.fixtures import add_partner, add_program, make_store


class InvitationTestCase(unittest.TestCase):
    strict_references = False

    def setUp(self):
        self.store = make_store(strict_references=self.strict_references)
        self.host = add_partner(self.store, name="Save the Children Denmark")
        self.guest = add_partner(self.store, name="UNICEF", country="US")
        self.program = add_program(self.store, self.host)
        self.manager = InvitationManager(self.store)

    def relationships(self):
        return self.store.find_records(
            "program_partners", program_id=self.program.id, partner_id=self.guest.id
        )

    def invite_sponsor(self):
        return self.manager.invite_co_partner(
            self.program.id,
            self.guest.id,
            "partnerships@unicef.org",
            role="sponsor",
            sent_by="user-1",
        )


class TestCoPartnerInvitations(InvitationTestCase):

    def test_sponsor_invitation_then_accept(self):
        invitation = self.invite_sponsor()
        self.assertIsInstance(invitation, CoPartnerInvitation)
        self.assertEqual(invitation.status, "pending")
        self.assertFalse(invitation.proposed_permissions.can_edit_program)
        self.assertTrue(invitation.proposed_permissions.can_view_all_data)
        self.assertEqual(invitation.metadata.partner_id, self.guest.id)
        self.assertEqual(invitation.metadata.partner_name, "UNICEF")
        self.assertEqual([r.status for r in self.relationships()], ["invited"])

        outcome = self.manager.accept(invitation.id)
        self.assertEqual(outcome.invitation.status, "accepted")
        self.assertIsNotNone(outcome.invitation.responded_at)
        self.assertIsNotNone(outcome.invitation.viewed_at)
        self.assertEqual(outcome.relationship.status, "accepted")
        self.assertIsNotNone(outcome.relationship.accepted_at)
        self.assertFalse(outcome.stale_reference)
        self.assertEqual(len(self.relationships()), 1)

    def test_accept_twice_keeps_one_relationship(self):
        invitation = self.invite_sponsor()
        first = self.manager.accept(invitation.id)
        second = self.manager.accept(invitation.id)
        self.assertEqual(second.invitation.responded_at, first.invitation.responded_at)
        self.assertEqual(second.relationship.id, first.relationship.id)
        self.assertEqual(len(self.relationships()), 1)

    def test_opposite_answer_is_rejected(self):
        invitation = self.invite_sponsor()
        self.manager.accept(invitation.id)
        with self.assertRaises(InvitationStateError):
            self.manager.decline(invitation.id)
        self.assertEqual(self.relationships()[0].status, "accepted")

    def test_accept_creates_missing_relationship(self):
        invitation = self.invite_sponsor()
        self.store.delete_record("program_partners", self.relationships()[0].id)
        outcome = self.manager.accept(invitation.id)
        self.assertEqual(outcome.relationship.role, "sponsor")
        self.assertEqual(outcome.relationship.status, "accepted")
        self.assertTrue(outcome.relationship.permissions.can_view_all_data)
        self.assertEqual(len(self.relationships()), 1)

    def test_decline_marks_relationship_declined(self):
        invitation = self.invite_sponsor()
        outcome = self.manager.decline(invitation.id)
        self.assertEqual(outcome.invitation.status, "declined")
        self.assertEqual(outcome.relationship.status, "declined")

    def test_reinvite_reuses_relationship(self):
        first = self.invite_sponsor()
        self.manager.decline(first.id)
        self.manager.invite_co_partner(
            self.program.id, self.guest.id, "partnerships@unicef.org", role="co_host"
        )
        relationships = self.relationships()
        self.assertEqual(len(relationships), 1)
        self.assertEqual(relationships[0].status, "invited")
        self.assertEqual(relationships[0].role, "co_host")
        self.assertTrue(relationships[0].permissions.can_edit_program)

    def test_inviting_the_host_is_rejected(self):
        with self.assertRaises(InvitationStateError):
            self.manager.invite_co_partner(self.program.id, self.host.id, "host@example.org")

    def test_tokens_are_unique_and_resolvable(self):
        first = self.invite_sponsor()
        other = add_partner(self.store, name="Plan International", country="GB")
        second = self.manager.invite_co_partner(
            self.program.id, other.id, "hello@plan.org", role="advisor"
        )
        self.assertNotEqual(first.token, second.token)
        self.assertTrue(first.token.startswith(f"co_partner-{self.program.id}-"))
        self.assertEqual(self.manager.find_by_token(second.token).id, second.id)
        self.assertIsNone(self.manager.find_by_token("nope"))

    def test_stale_partner_is_reported(self):
        invitation = self.invite_sponsor()
        self.store.delete_record("partners", self.guest.id)
        with self.assertLogs("class2class.utils.invitation_manager", level="WARNING"):
            outcome = self.manager.accept(invitation.id)
        self.assertTrue(outcome.stale_reference)
        self.assertEqual(outcome.invitation.status, "accepted")
        self.assertIsNone(outcome.relationship)
        self.assertEqual(self.relationships()[0].status, "invited")

    def test_unknown_invitation(self):
        self.assertIsNone(self.manager.accept("missing"))
        self.assertIsNone(self.manager.mark_viewed("missing"))

    def test_mark_viewed_once(self):
        invitation = self.invite_sponsor()
        viewed = self.manager.mark_viewed(invitation.id)
        self.assertIsNotNone(viewed.viewed_at)
        again = self.manager.mark_viewed(invitation.id)
        self.assertEqual(again.viewed_at, viewed.viewed_at)
        self.assertEqual(self.manager.accept(invitation.id).invitation.viewed_at, viewed.viewed_at)

    def test_list_for_program(self):
        self.invite_sponsor()
        self.manager.invite_coordinator(self.program.id, "c@example.org", "Mette", "Holm", "DK")
        self.assertEqual(len(self.manager.list_for_program(self.program.id)), 2)
        coordinators = self.manager.list_for_program(self.program.id, "coordinator")
        self.assertEqual([i.invitation_type for i in coordinators], ["coordinator"])


class TestStrictReferences(InvitationTestCase):
    strict_references = True

    def test_stale_partner_raises_before_writing(self):
        invitation = self.invite_sponsor()
        self.store.delete_record("program_partners", self.relationships()[0].id)
        self.store.delete_record("partners", self.guest.id)
        with self.assertRaises(StaleReferenceError):
            self.manager.accept(invitation.id)
        self.assertEqual(self.manager.get_invitation(invitation.id).status, "pending")


class TestCoordinatorInvitations(InvitationTestCase):

    def invite(self):
        return self.manager.invite_coordinator(
            self.program.id,
            "mette@example.org",
            "Mette",
            "Holm",
            "DK",
            invited_by="user-1",
            region="Zealand",
        )

    def test_invite_creates_coordinator(self):
        invitation = self.invite()
        self.assertIsInstance(invitation, CoordinatorInvitation)
        coordinator = self.store.get_by_id("coordinators", invitation.metadata.coordinator_id)
        self.assertEqual(coordinator.status, "invited")
        self.assertEqual(coordinator.country, "DK")
        self.assertEqual(invitation.assigned_country, "DK")
        self.assertEqual(invitation.assigned_region, "Zealand")
        self.assertEqual(invitation.recipient_name, "Mette Holm")

    def test_accept_activates_coordinator(self):
        invitation = self.invite()
        outcome = self.manager.accept(invitation.id)
        self.assertEqual(outcome.coordinator.status, "active")
        self.assertIsNotNone(outcome.coordinator.accepted_at)

    def test_decline_deactivates_coordinator(self):
        invitation = self.invite()
        outcome = self.manager.decline(invitation.id)
        self.assertEqual(outcome.invitation.status, "declined")
        self.assertEqual(outcome.coordinator.status, "inactive")

    def test_accept_with_missing_coordinator(self):
        invitation = self.invite()
        self.store.delete_record("coordinators", invitation.metadata.coordinator_id)
        with self.assertLogs("class2class.utils.invitation_manager", level="WARNING"):
            outcome = self.manager.accept(invitation.id)
        self.assertTrue(outcome.stale_reference)
        self.assertIsNone(outcome.coordinator)
        self.assertEqual(outcome.invitation.status, "accepted")
        self.assertEqual(self.manager.get_invitation(invitation.id).status, "accepted")
        self.assertEqual(self.store.get_all("coordinators"), [])


class TestStrictCoordinatorReferences(InvitationTestCase):
    strict_references = True

    def test_missing_coordinator_raises_before_writing(self):
        invitation = self.manager.invite_coordinator(
            self.program.id, "mette@example.org", "Mette", "Holm", "DK"
        )
        self.store.delete_record("coordinators", invitation.metadata.coordinator_id)
        with self.assertRaises(StaleReferenceError) as ctx:
            self.manager.accept(invitation.id)
        self.assertEqual(ctx.exception.table, "coordinators")
        self.assertEqual(self.manager.get_invitation(invitation.id).status, "pending")


class TestExpiry(InvitationTestCase):

    def test_expiry_is_fourteen_days(self):
        invitation = self.invite_sponsor()
        sent = datetime.fromisoformat(invitation.sent_at)
        expires = datetime.fromisoformat(invitation.expires_at)
        self.assertEqual(expires - sent, timedelta(days=14))

    def test_expired_invitation_stays_pending(self):
        invitation = self.invite_sponsor()
        past = (datetime.now(pytz.utc) - timedelta(days=1)).isoformat()
        self.store.update_record("invitations", invitation.id, {"expires_at": past})
        stored = self.manager.get_invitation(invitation.id)
        self.assertTrue(is_expired(stored))
        self.assertEqual(stored.status, "pending")
        self.assertFalse(is_expired(invitation))


class TestDefaultPermissions(unittest.TestCase):

    def test_roles(self):
        self.assertTrue(all(default_permissions("host").model_dump().values()))
        self.assertFalse(default_permissions("co_host").can_remove_participants)
        self.assertFalse(any(default_permissions("supporter").model_dump().values()))

    def test_unknown_role(self):
        with self.assertRaises(ValueError):
            default_permissions("owner")


if __name__ == "__main__":
    unittest.main()
