"""Program summary schema definitions.

A summary is a read-only, denormalized view of one program and every row
linked to it, annotated with rollup metrics. Summaries are recomputed on
every request and never stored.
"""

from typing import List, Optional

from pydantic import Field

from class2class.schemas.base import StoreModel
from class2class.schemas.invitation import ProgramInvitation
from class2class.schemas.partner import Partner
from class2class.schemas.program import (
    CountryCoordinator,
    EducationalInstitution,
    InstitutionTeacher,
    Program,
    ProgramActivity,
    ProgramPartner,
    ProgramProject,
)


class CoPartnerEntry(StoreModel):
    relationship: ProgramPartner
    partner: Optional[Partner] = Field(
        default=None, description="None when the partner row no longer exists."
    )


class ProgramSummaryMetrics(StoreModel):
    student_count: int = 0
    institution_count: int = 0
    active_institution_count: int = 0
    teacher_count: int = 0
    coordinator_count: int = 0
    co_partner_count: int = 0
    project_count: int = 0
    pending_invitations: int = 0
    countries: List[str] = Field(default_factory=list)


class ProgramSummary(StoreModel):
    program: Program
    co_partners: List[CoPartnerEntry] = Field(default_factory=list)
    coordinators: List[CountryCoordinator] = Field(default_factory=list)
    institutions: List[EducationalInstitution] = Field(default_factory=list)
    teachers: List[InstitutionTeacher] = Field(default_factory=list)
    projects: List[ProgramProject] = Field(default_factory=list)
    invitations: List[ProgramInvitation] = Field(default_factory=list)
    activities: List[ProgramActivity] = Field(default_factory=list)
    metrics: ProgramSummaryMetrics = Field(default_factory=ProgramSummaryMetrics)


class PartnerProgramMetrics(StoreModel):
    """Rollup of every program summary visible to one partner."""

    total_programs: int = 0
    active_programs: int = 0
    co_partners: int = 0
    coordinators: int = 0
    institutions: int = 0
    teachers: int = 0
    students: int = 0
    projects: int = 0
    pending_invitations: int = 0
    country_count: int = 0
