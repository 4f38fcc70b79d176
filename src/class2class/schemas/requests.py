"""Request body schemas for the HTTP API."""

from typing import List, Literal, Optional

from pydantic import Field

from class2class.schemas.base import StoreModel
from class2class.schemas.program import CoPartnerPermissions, CoPartnerRole, ProgramStatus


class CreateProgramRequest(StoreModel):
    partner_id: str = Field(description="The hosting partner.")
    name: str = Field(min_length=1)
    display_title: Optional[str] = None
    description: str = ""
    learning_goals: str = ""
    countries_in_scope: List[str] = Field(default_factory=list)
    sdg_focus: List[int] = Field(default_factory=list)
    start_date: str = ""
    end_date: str = ""
    status: ProgramStatus = "draft"
    is_public: bool = False
    created_by: str = ""


class CoPartnerInviteRequest(StoreModel):
    partner_id: str
    recipient_email: str
    recipient_name: Optional[str] = None
    role: CoPartnerRole = "co_host"
    permissions: Optional[CoPartnerPermissions] = Field(
        default=None, description="Overrides the default permissions of the role."
    )
    sent_by: str = ""
    custom_message: Optional[str] = None


class CoordinatorInviteRequest(StoreModel):
    recipient_email: str
    first_name: str = ""
    last_name: str = ""
    country: str
    region: Optional[str] = None
    phone_number: Optional[str] = None
    invited_by: str = ""
    custom_message: Optional[str] = None


class CreateSessionRequest(StoreModel):
    email: str
    role: Literal["partner", "teacher", "student"]
    organization: Optional[str] = None
    name: Optional[str] = None
