"""User session schema definitions.

This module defines the session descriptor consumed by dashboard code to
work out which partner is looking at the data.
"""

from typing import Literal, Optional

from pydantic import Field

from class2class.schemas.base import StoreModel, utc_now_iso
from class2class.schemas.partner import Partner, PartnerUser


class UserSession(StoreModel):
    email: str = Field(description="Email address used to sign in.")
    role: Literal["partner", "teacher", "student"] = Field(
        description="The role the user signed in with."
    )
    organization: Optional[str] = Field(
        default=None,
        description="Organization name entered at sign-in, used to find the partner row.",
    )
    name: Optional[str] = None
    login_time: str = Field(
        description="The time when the session was created.",
        default_factory=utc_now_iso,
    )


class PartnerContext(StoreModel):
    """The partner a session represents and, when known, its user row."""

    partner: Partner
    partner_user: Optional[PartnerUser] = Field(
        default=None,
        description="Partner user whose email matches the session, if any.",
    )
