"""Program schema definitions.

This module defines the program tables: programs, co-partner relationships,
coordinators, institutions, teachers, projects, templates and activities.
"""

from typing import List, Literal, Optional

from pydantic import Field

from class2class.schemas.base import Record, StoreModel, utc_now_iso

ProgramStatus = Literal["draft", "active", "completed", "archived"]

CoPartnerRole = Literal["host", "co_host", "sponsor", "advisor", "supporter"]

RelationshipStatus = Literal["invited", "accepted", "declined"]

CoordinatorStatus = Literal["invited", "active", "inactive"]


class Program(Record):
    partner_id: str = Field(description="The partner hosting the program.")
    name: str
    display_title: str = ""
    marketing_tagline: Optional[str] = None
    description: str = ""
    learning_goals: str = ""
    project_types: List[str] = Field(default_factory=list)
    target_age_ranges: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    countries_in_scope: List[str] = Field(
        default_factory=list, description="ISO country codes."
    )
    sdg_focus: List[int] = Field(default_factory=list, description="UN SDG numbers (1-17).")
    crc_focus: List[str] = Field(default_factory=list)
    start_date: str = ""
    end_date: str = ""
    program_url: Optional[str] = None
    brand_color: Optional[str] = None
    status: ProgramStatus = "draft"
    is_public: bool = False
    created_by: str = ""


class CoPartnerPermissions(StoreModel):
    can_edit_program: bool = False
    can_invite_coordinators: bool = False
    can_view_all_data: bool = False
    can_manage_projects: bool = False
    can_remove_participants: bool = False


class ProgramPartner(Record):
    """Relationship between a program and a partner. One row per pair."""

    program_id: str
    partner_id: str
    role: CoPartnerRole
    permissions: CoPartnerPermissions = Field(default_factory=CoPartnerPermissions)
    invited_by: str = ""
    invited_at: str = Field(default_factory=utc_now_iso)
    status: RelationshipStatus = "invited"
    accepted_at: Optional[str] = None


class CountryCoordinator(Record):
    program_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    phone_number: Optional[str] = None
    user_id: Optional[str] = None
    country: str = ""
    region: Optional[str] = None
    status: CoordinatorStatus = "invited"
    invited_by: str = ""
    invited_at: str = Field(default_factory=utc_now_iso)
    accepted_at: Optional[str] = None


class EducationalInstitution(Record):
    program_id: str
    coordinator_id: Optional[str] = None
    name: str
    type: str = "other"
    country: str = ""
    region: Optional[str] = None
    city: Optional[str] = None
    contact_email: str = ""
    student_count: int = 0
    active_student_count: Optional[int] = None
    teacher_count: Optional[int] = None
    education_levels: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    status: Literal["invited", "active", "inactive", "withdrawn"] = "invited"
    invited_at: str = Field(default_factory=utc_now_iso)
    joined_at: Optional[str] = None


class InstitutionTeacher(Record):
    institution_id: str
    program_id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    subject: Optional[str] = None
    grade_level: Optional[str] = None
    status: CoordinatorStatus = "invited"
    invited_at: str = Field(default_factory=utc_now_iso)
    accepted_at: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ProgramProject(Record):
    program_id: str
    project_id: Optional[str] = None
    title: Optional[str] = None
    created_by_type: Literal["partner", "coordinator", "teacher"] = "teacher"
    created_by_id: str
    participant_ids: List[str] = Field(default_factory=list)
    associated_co_partner_id: Optional[str] = None
    status: Literal["draft", "active", "completed", "archived"] = "active"
    template_id: Optional[str] = None


class ProgramProjectTemplate(Record):
    program_id: str
    title: str
    summary: str = ""
    subject_focus: List[str] = Field(default_factory=list)
    sdg_alignment: List[int] = Field(default_factory=list)
    language_support: List[str] = Field(default_factory=list)
    is_active: bool = True


class ProgramActivity(Record):
    program_id: str
    type: Literal[
        "co_partner_joined",
        "coordinator_joined",
        "institution_joined",
        "teacher_joined",
        "project_created",
    ]
    actor_name: str = ""
    actor_type: Literal["partner", "coordinator", "teacher"] = "partner"
    description: str = ""
    timestamp: str = Field(default_factory=utc_now_iso)
