"""Invitation schema definitions.

Co-partner and coordinator invitations share the ``invitations`` table and
are told apart by ``invitation_type``. Each variant carries its own metadata
model, so consumers match on the concrete class.
"""

from typing import Any, Dict, Literal, Mapping, Optional, Union

from pydantic import Field

from class2class.schemas.base import Record, StoreModel, utc_now_iso
from class2class.schemas.program import (
    CoPartnerPermissions,
    CoPartnerRole,
    CountryCoordinator,
    ProgramPartner,
)

InvitationStatus = Literal["pending", "accepted", "declined"]


class CoPartnerInvitationMetadata(StoreModel):
    partner_id: str
    partner_name: Optional[str] = None


class CoordinatorInvitationMetadata(StoreModel):
    coordinator_id: str
    country: str = ""
    region: Optional[str] = None


class InvitationBase(Record):
    program_id: str
    recipient_email: str
    recipient_name: Optional[str] = None
    sent_by: str = ""
    sent_by_type: Literal["partner", "coordinator"] = "partner"
    custom_message: Optional[str] = None
    token: str
    expires_at: str
    status: InvitationStatus = "pending"
    sent_at: str = Field(default_factory=utc_now_iso)
    viewed_at: Optional[str] = None
    responded_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != "pending"


class CoPartnerInvitation(InvitationBase):
    invitation_type: Literal["co_partner"] = "co_partner"
    metadata: CoPartnerInvitationMetadata
    proposed_role: CoPartnerRole
    proposed_permissions: CoPartnerPermissions = Field(default_factory=CoPartnerPermissions)


class CoordinatorInvitation(InvitationBase):
    invitation_type: Literal["coordinator"] = "coordinator"
    metadata: CoordinatorInvitationMetadata
    assigned_country: str = ""
    assigned_region: Optional[str] = None


ProgramInvitation = Union[CoPartnerInvitation, CoordinatorInvitation]

INVITATION_MODELS: Dict[str, type] = {
    "co_partner": CoPartnerInvitation,
    "coordinator": CoordinatorInvitation,
}


def parse_invitation(data: Mapping[str, Any]) -> ProgramInvitation:
    """Build the invitation variant named by the row's discriminant.

    Args:
        data: Row data keyed by field names or camelCase aliases.

    Returns:
        The concrete invitation model.

    Raises:
        ValueError: If the invitation type is missing or unknown.
        pydantic.ValidationError: If the row does not fit the variant.
    """
    invitation_type = data.get("invitationType", data.get("invitation_type"))
    model = INVITATION_MODELS.get(invitation_type)
    if model is None:
        raise ValueError(f"Unknown invitation type: {invitation_type!r}")
    return model.model_validate(dict(data))


class InvitationOutcome(StoreModel):
    """Result of answering an invitation."""

    invitation: ProgramInvitation
    relationship: Optional[ProgramPartner] = None
    coordinator: Optional[CountryCoordinator] = None
    stale_reference: bool = Field(
        default=False,
        description="True when the referenced partner or coordinator no longer exists.",
    )
