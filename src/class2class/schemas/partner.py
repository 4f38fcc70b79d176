"""Partner schema definitions."""

from typing import List, Literal, Optional

from pydantic import Field

from class2class.schemas.base import Record


class Partner(Record):
    """A partner organization (NGO, foundation, school network...)."""

    organization_name: str = Field(description="Display name of the organization.")
    organization_type: Literal[
        "ngo", "government", "school_network", "commercial", "other"
    ] = "ngo"
    description: str = ""
    mission: str = ""
    website: Optional[str] = None
    contact_email: str = ""
    contact_phone: Optional[str] = None
    country: str = Field(default="", description="ISO country code.")
    languages: List[str] = Field(default_factory=list)
    sdg_focus: List[str] = Field(default_factory=list)
    is_active: bool = True
    verification_status: Literal["pending", "verified", "rejected"] = "pending"


class PartnerUser(Record):
    """A person signing in on behalf of a partner."""

    partner_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: Literal["admin", "coordinator", "collaborator"] = "admin"
    is_active: bool = True
    last_login_at: Optional[str] = None
