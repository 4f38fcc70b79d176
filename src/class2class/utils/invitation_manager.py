"""Invitation management utilities.

Co-partner and coordinator invitations move from ``pending`` to ``accepted``
or ``declined`` and never back. Each transition also updates the row the
invitation points at (a program partner relationship or a coordinator) in
the same store transaction.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytz

from class2class.config import INVITATION_EXPIRY_DAYS
from class2class.core.exceptions import InvitationStateError, StaleReferenceError
from class2class.schemas.base import utc_now_iso
from class2class.schemas.invitation import (
    CoordinatorInvitation,
    CoPartnerInvitation,
    InvitationOutcome,
    ProgramInvitation,
)
from class2class.schemas.program import CoPartnerPermissions, ProgramPartner
from class2class.utils.entity_store import EntityStore
from class2class.utils.program_selectors import invitations_for_program

logger = logging.getLogger(__name__)

ROLE_PERMISSIONS: Dict[str, Dict[str, bool]] = {
    "host": {
        "can_edit_program": True,
        "can_invite_coordinators": True,
        "can_view_all_data": True,
        "can_manage_projects": True,
        "can_remove_participants": True,
    },
    "co_host": {
        "can_edit_program": True,
        "can_invite_coordinators": True,
        "can_view_all_data": True,
        "can_manage_projects": True,
        "can_remove_participants": False,
    },
    "sponsor": {"can_view_all_data": True},
    "advisor": {"can_view_all_data": True},
    "supporter": {},
}


def default_permissions(role: str) -> CoPartnerPermissions:
    """Permission bundle granted to a co-partner role.

    Raises:
        ValueError: If the role is unknown.
    """
    if role not in ROLE_PERMISSIONS:
        raise ValueError(f"Unknown co-partner role: {role}")
    return CoPartnerPermissions(**ROLE_PERMISSIONS[role])


def is_expired(invitation: ProgramInvitation, now: Optional[datetime] = None) -> bool:
    """Whether ``expires_at`` has passed.

    Expiry is informational: an expired invitation keeps its status until
    someone answers it.
    """
    try:
        expires_at = datetime.fromisoformat(invitation.expires_at.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Invitation %s has an unreadable expires_at", invitation.id)
        return False
    if expires_at.tzinfo is None:
        expires_at = pytz.utc.localize(expires_at)
    return (now or datetime.now(pytz.utc)) > expires_at


class InvitationManager:
    """Creates invitations and applies their answers."""

    def __init__(self, store: EntityStore, expires_in_days: int = INVITATION_EXPIRY_DAYS):
        """Initialize InvitationManager.

        Args:
            store: The entity store holding the invitation tables.
            expires_in_days: Lifetime stamped into new invitations.
        """
        self.store = store
        self.expires_in_days = expires_in_days

    def _generate_token(self, program_id: str, invitation_type: str, now: datetime) -> str:
        stamp = int(now.timestamp() * 1000)
        token = f"{invitation_type}-{program_id}-{stamp}"
        existing = {invitation.token for invitation in self.store.get_all("invitations")}
        while token in existing:
            token = f"{invitation_type}-{program_id}-{stamp}-{secrets.token_hex(3)}"
        return token

    def _find_relationship(self, program_id: str, partner_id: str) -> Optional[ProgramPartner]:
        matches = self.store.find_records(
            "program_partners", program_id=program_id, partner_id=partner_id
        )
        if len(matches) > 1:
            logger.warning(
                "Program %s has %d relationship rows for partner %s",
                program_id,
                len(matches),
                partner_id,
            )
        return matches[0] if matches else None

    # --- creation ---

    def invite_co_partner(
        self,
        program_id: str,
        partner_id: str,
        recipient_email: str,
        role: str = "co_host",
        sent_by: str = "",
        recipient_name: Optional[str] = None,
        custom_message: Optional[str] = None,
        permissions: Optional[CoPartnerPermissions] = None,
    ) -> CoPartnerInvitation:
        """Invite a partner onto a program and mark the relationship invited.

        Args:
            program_id: Program the partner is invited to.
            partner_id: The invited partner.
            recipient_email: Where the invitation goes.
            role: Proposed co-partner role.
            sent_by: User id of the sender.
            recipient_name: Optional display name of the recipient.
            custom_message: Optional note from the sender.
            permissions: Overrides the role's default permission bundle.

        Returns:
            The pending invitation.

        Raises:
            InvitationStateError: If the partner already hosts the program.
            ValueError: If the role is unknown.
        """
        program = self.store.get_by_id("programs", program_id)
        if program and program.partner_id == partner_id:
            raise InvitationStateError(
                f"Partner {partner_id} already hosts program {program_id}"
            )
        proposed = permissions or default_permissions(role)
        partner = self.store.get_by_id("partners", partner_id)
        now_dt = datetime.now(pytz.utc)
        now = now_dt.isoformat()

        with self.store.transaction():
            invitation = self.store.create_record(
                "invitations",
                {
                    "invitation_type": "co_partner",
                    "program_id": program_id,
                    "recipient_email": recipient_email,
                    "recipient_name": recipient_name,
                    "sent_by": sent_by,
                    "sent_by_type": "partner",
                    "custom_message": custom_message,
                    "token": self._generate_token(program_id, "co_partner", now_dt),
                    "sent_at": now,
                    "expires_at": (now_dt + timedelta(days=self.expires_in_days)).isoformat(),
                    "status": "pending",
                    "metadata": {
                        "partner_id": partner_id,
                        "partner_name": partner.organization_name if partner else None,
                    },
                    "proposed_role": role,
                    "proposed_permissions": proposed,
                },
            )

            relationship_fields = {
                "role": role,
                "permissions": proposed,
                "status": "invited",
                "invited_by": sent_by,
                "invited_at": now,
                "accepted_at": None,
            }
            existing = self._find_relationship(program_id, partner_id)
            if existing:
                self.store.update_record("program_partners", existing.id, relationship_fields)
            else:
                self.store.create_record(
                    "program_partners",
                    {"program_id": program_id, "partner_id": partner_id, **relationship_fields},
                )

        logger.info(
            "Invited partner %s to program %s as %s", partner_id, program_id, role
        )
        return invitation

    def invite_coordinator(
        self,
        program_id: str,
        recipient_email: str,
        first_name: str,
        last_name: str,
        country: str,
        invited_by: str = "",
        region: Optional[str] = None,
        custom_message: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> CoordinatorInvitation:
        """Create an invited coordinator and the invitation pointing at it."""
        now_dt = datetime.now(pytz.utc)
        now = now_dt.isoformat()

        with self.store.transaction():
            coordinator = self.store.create_record(
                "coordinators",
                {
                    "program_id": program_id,
                    "email": recipient_email,
                    "first_name": first_name,
                    "last_name": last_name,
                    "phone_number": phone_number,
                    "country": country,
                    "region": region,
                    "status": "invited",
                    "invited_by": invited_by,
                    "invited_at": now,
                },
            )
            invitation = self.store.create_record(
                "invitations",
                {
                    "invitation_type": "coordinator",
                    "program_id": program_id,
                    "recipient_email": recipient_email,
                    "recipient_name": f"{first_name} {last_name}".strip() or None,
                    "sent_by": invited_by,
                    "sent_by_type": "partner",
                    "custom_message": custom_message,
                    "token": self._generate_token(program_id, "coordinator", now_dt),
                    "sent_at": now,
                    "expires_at": (now_dt + timedelta(days=self.expires_in_days)).isoformat(),
                    "status": "pending",
                    "metadata": {
                        "coordinator_id": coordinator.id,
                        "country": country,
                        "region": region,
                    },
                    "assigned_country": country,
                    "assigned_region": region,
                },
            )

        logger.info(
            "Invited coordinator %s to program %s for %s", coordinator.id, program_id, country
        )
        return invitation

    # --- lookups ---

    def get_invitation(self, invitation_id: str) -> Optional[ProgramInvitation]:
        return self.store.get_by_id("invitations", invitation_id)

    def find_by_token(self, token: str) -> Optional[ProgramInvitation]:
        matches = self.store.find_records("invitations", token=token)
        return matches[0] if matches else None

    def list_for_program(
        self, program_id: str, invitation_type: Optional[str] = None
    ) -> List[ProgramInvitation]:
        return invitations_for_program(self.store.database, program_id, invitation_type)

    def is_expired(self, invitation: ProgramInvitation, now: Optional[datetime] = None) -> bool:
        return is_expired(invitation, now)

    def mark_viewed(self, invitation_id: str) -> Optional[ProgramInvitation]:
        """Stamp ``viewed_at`` the first time the recipient opens the invitation."""
        invitation = self.get_invitation(invitation_id)
        if invitation is None or invitation.viewed_at:
            return invitation
        return self.store.update_record(
            "invitations", invitation_id, {"viewed_at": utc_now_iso()}
        )

    # --- answers ---

    def accept(self, invitation_id: str) -> Optional[InvitationOutcome]:
        return self.respond(invitation_id, accept=True)

    def decline(self, invitation_id: str) -> Optional[InvitationOutcome]:
        return self.respond(invitation_id, accept=False)

    def respond(self, invitation_id: str, accept: bool) -> Optional[InvitationOutcome]:
        """Apply an answer to an invitation.

        Answering again with the same answer changes nothing and returns the
        current state.

        Args:
            invitation_id: The invitation being answered.
            accept: True to accept, False to decline.

        Returns:
            The outcome, or None if the invitation does not exist.

        Raises:
            InvitationStateError: If the invitation already holds the other
                answer.
            StaleReferenceError: In strict mode, if the invited partner or
                coordinator no longer exists.
        """
        invitation = self.get_invitation(invitation_id)
        if invitation is None:
            logger.info("Invitation %s not found", invitation_id)
            return None

        status = "accepted" if accept else "declined"
        if invitation.is_terminal:
            if invitation.status == status:
                return self._current_outcome(invitation)
            raise InvitationStateError(
                f"Invitation {invitation_id} is already {invitation.status}"
            )

        if isinstance(invitation, CoPartnerInvitation):
            return self._respond_co_partner(invitation, status)
        if isinstance(invitation, CoordinatorInvitation):
            return self._respond_coordinator(invitation, status)
        raise InvitationStateError(
            f"Unsupported invitation type: {type(invitation).__name__}"
        )

    def _terminal_fields(self, invitation: ProgramInvitation, status: str, now: str) -> dict:
        return {
            "status": status,
            "responded_at": now,
            "viewed_at": invitation.viewed_at or now,
        }

    def _respond_co_partner(
        self, invitation: CoPartnerInvitation, status: str
    ) -> InvitationOutcome:
        partner_id = invitation.metadata.partner_id
        stale = self.store.get_by_id("partners", partner_id) is None
        if stale and self.store.strict_references:
            raise StaleReferenceError("partners", partner_id, "metadata.partner_id")

        now = utc_now_iso()
        relationship = None
        with self.store.transaction():
            updated = self.store.update_record(
                "invitations", invitation.id, self._terminal_fields(invitation, status, now)
            )
            if stale:
                logger.warning(
                    "Invitation %s references missing partner %s; relationship left unchanged",
                    invitation.id,
                    partner_id,
                )
            else:
                existing = self._find_relationship(invitation.program_id, partner_id)
                if status == "accepted" and existing:
                    relationship = self.store.update_record(
                        "program_partners",
                        existing.id,
                        {"status": "accepted", "accepted_at": now},
                    )
                elif status == "accepted":
                    relationship = self.store.create_record(
                        "program_partners",
                        {
                            "program_id": invitation.program_id,
                            "partner_id": partner_id,
                            "role": invitation.proposed_role,
                            "permissions": invitation.proposed_permissions,
                            "invited_by": invitation.sent_by,
                            "invited_at": invitation.sent_at,
                            "status": "accepted",
                            "accepted_at": now,
                        },
                    )
                elif existing:
                    relationship = self.store.update_record(
                        "program_partners", existing.id, {"status": "declined"}
                    )

        logger.info("Co-partner invitation %s %s", invitation.id, status)
        return InvitationOutcome(
            invitation=updated, relationship=relationship, stale_reference=stale
        )

    def _respond_coordinator(
        self, invitation: CoordinatorInvitation, status: str
    ) -> InvitationOutcome:
        coordinator_id = invitation.metadata.coordinator_id
        stale = self.store.get_by_id("coordinators", coordinator_id) is None
        if stale and self.store.strict_references:
            raise StaleReferenceError("coordinators", coordinator_id, "metadata.coordinator_id")

        now = utc_now_iso()
        coordinator = None
        with self.store.transaction():
            updated = self.store.update_record(
                "invitations", invitation.id, self._terminal_fields(invitation, status, now)
            )
            if stale:
                logger.warning(
                    "Invitation %s references missing coordinator %s; coordinator left unchanged",
                    invitation.id,
                    coordinator_id,
                )
            elif status == "accepted":
                coordinator = self.store.update_record(
                    "coordinators", coordinator_id, {"status": "active", "accepted_at": now}
                )
            else:
                coordinator = self.store.update_record(
                    "coordinators", coordinator_id, {"status": "inactive"}
                )

        logger.info("Coordinator invitation %s %s", invitation.id, status)
        return InvitationOutcome(
            invitation=updated, coordinator=coordinator, stale_reference=stale
        )

    def _current_outcome(self, invitation: ProgramInvitation) -> InvitationOutcome:
        if isinstance(invitation, CoPartnerInvitation):
            partner_id = invitation.metadata.partner_id
            return InvitationOutcome(
                invitation=invitation,
                relationship=self._find_relationship(invitation.program_id, partner_id),
                stale_reference=self.store.get_by_id("partners", partner_id) is None,
            )
        coordinator = self.store.get_by_id("coordinators", invitation.metadata.coordinator_id)
        return InvitationOutcome(
            invitation=invitation,
            coordinator=coordinator,
            stale_reference=coordinator is None,
        )
