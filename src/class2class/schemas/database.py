"""Snapshot schema of the whole table set."""

from typing import List, Optional

from pydantic import Field

from class2class.config import STORAGE_SCHEMA_VERSION
from class2class.schemas.base import StoreModel
from class2class.schemas.invitation import ProgramInvitation
from class2class.schemas.partner import Partner, PartnerUser
from class2class.schemas.program import (
    CountryCoordinator,
    EducationalInstitution,
    InstitutionTeacher,
    Program,
    ProgramActivity,
    ProgramPartner,
    ProgramProject,
    ProgramProjectTemplate,
)


class PrototypeMetadata(StoreModel):
    version: int = STORAGE_SCHEMA_VERSION
    seeded_at: Optional[str] = None


class PrototypeDatabase(StoreModel):
    """Every table of the store, persisted as one blob."""

    partners: List[Partner] = Field(default_factory=list)
    partner_users: List[PartnerUser] = Field(default_factory=list)
    programs: List[Program] = Field(default_factory=list)
    program_partners: List[ProgramPartner] = Field(default_factory=list)
    coordinators: List[CountryCoordinator] = Field(default_factory=list)
    institutions: List[EducationalInstitution] = Field(default_factory=list)
    institution_teachers: List[InstitutionTeacher] = Field(default_factory=list)
    program_projects: List[ProgramProject] = Field(default_factory=list)
    program_templates: List[ProgramProjectTemplate] = Field(default_factory=list)
    invitations: List[ProgramInvitation] = Field(default_factory=list)
    activities: List[ProgramActivity] = Field(default_factory=list)
    metadata: PrototypeMetadata = Field(default_factory=PrototypeMetadata)
