"""Program selectors.

Pure functions joining the store tables into program summaries. Every
selector takes a ``PrototypeDatabase`` snapshot, never mutates it, and treats
missing rows as "not found" instead of raising.
"""

from typing import Iterable, List, Optional, TypeVar

from class2class.schemas.base import Record
from class2class.schemas.database import PrototypeDatabase
from class2class.schemas.invitation import ProgramInvitation
from class2class.schemas.program import (
    CountryCoordinator,
    EducationalInstitution,
    InstitutionTeacher,
    Program,
    ProgramProjectTemplate,
)
from class2class.schemas.summary import CoPartnerEntry, ProgramSummary
from class2class.utils.program_metrics import compute_metrics

RecordT = TypeVar("RecordT", bound=Record)

# Relationship states that make a program show up for a co-partner
RELATED_PROGRAM_STATUSES = frozenset({"accepted", "invited"})


def _unique(rows: Iterable[RecordT]) -> List[RecordT]:
    """Drop repeated ids, keeping the first occurrence and table order."""
    seen = set()
    unique = []
    for row in rows:
        if row.id in seen:
            continue
        seen.add(row.id)
        unique.append(row)
    return unique


def co_partners_for_program(db: PrototypeDatabase, program_id: str) -> List[CoPartnerEntry]:
    partners_by_id = {partner.id: partner for partner in db.partners}
    return [
        CoPartnerEntry(
            relationship=relationship,
            partner=partners_by_id.get(relationship.partner_id),
        )
        for relationship in _unique(
            rel for rel in db.program_partners if rel.program_id == program_id
        )
    ]


def coordinators_for_program(
    db: PrototypeDatabase, program_id: str
) -> List[CountryCoordinator]:
    return _unique(c for c in db.coordinators if c.program_id == program_id)


def institutions_for_program(
    db: PrototypeDatabase,
    program_id: str,
    excluded_institution_ids: Iterable[str] = (),
) -> List[EducationalInstitution]:
    excluded = frozenset(excluded_institution_ids)
    return _unique(
        institution
        for institution in db.institutions
        if institution.program_id == program_id and institution.id not in excluded
    )


def teachers_for_institutions(
    db: PrototypeDatabase, institutions: Iterable[EducationalInstitution]
) -> List[InstitutionTeacher]:
    """Teachers whose institution is one of ``institutions``."""
    institution_ids = {institution.id for institution in institutions}
    return _unique(
        teacher
        for teacher in db.institution_teachers
        if teacher.institution_id in institution_ids
    )


def teachers_for_program(
    db: PrototypeDatabase,
    program_id: str,
    excluded_institution_ids: Iterable[str] = (),
) -> List[InstitutionTeacher]:
    institutions = institutions_for_program(db, program_id, excluded_institution_ids)
    return teachers_for_institutions(db, institutions)


def templates_for_program(
    db: PrototypeDatabase, program_id: str
) -> List[ProgramProjectTemplate]:
    return _unique(t for t in db.program_templates if t.program_id == program_id)


def invitations_for_program(
    db: PrototypeDatabase,
    program_id: str,
    invitation_type: Optional[str] = None,
) -> List[ProgramInvitation]:
    return _unique(
        invitation
        for invitation in db.invitations
        if invitation.program_id == program_id
        and (invitation_type is None or invitation.invitation_type == invitation_type)
    )


def get_programs_for_partner(
    db: PrototypeDatabase,
    partner_id: str,
    include_related_programs: bool = False,
) -> List[Program]:
    """Programs hosted by the partner, plus related ones if requested.

    A program is related when the partner holds an accepted or invited
    relationship row for it. Results follow Program table order.
    """
    related_ids = set()
    if include_related_programs:
        related_ids = {
            relationship.program_id
            for relationship in db.program_partners
            if relationship.partner_id == partner_id
            and relationship.status in RELATED_PROGRAM_STATUSES
        }
    return _unique(
        program
        for program in db.programs
        if program.partner_id == partner_id or program.id in related_ids
    )


def build_program_summary(
    db: PrototypeDatabase,
    program: Program,
    excluded_institution_ids: Iterable[str] = (),
) -> ProgramSummary:
    """Join every row linked to ``program`` and compute its metrics.

    Args:
        db: Table snapshot.
        program: The program row.
        excluded_institution_ids: Institutions to leave out, together with
            their teachers.

    Returns:
        The program summary.
    """
    program_id = program.id
    institutions = institutions_for_program(db, program_id, excluded_institution_ids)
    teachers = teachers_for_institutions(db, institutions)
    co_partners = co_partners_for_program(db, program_id)
    coordinators = coordinators_for_program(db, program_id)
    projects = _unique(p for p in db.program_projects if p.program_id == program_id)
    invitations = invitations_for_program(db, program_id)
    activities = _unique(a for a in db.activities if a.program_id == program_id)

    return ProgramSummary(
        program=program,
        co_partners=co_partners,
        coordinators=coordinators,
        institutions=institutions,
        teachers=teachers,
        projects=projects,
        invitations=invitations,
        activities=activities,
        metrics=compute_metrics(
            co_partners,
            coordinators,
            institutions,
            teachers,
            projects,
            invitations,
        ),
    )


def find_program_summary_by_id(
    db: PrototypeDatabase,
    program_id: str,
    excluded_institution_ids: Iterable[str] = (),
) -> Optional[ProgramSummary]:
    """Summary of one program, or None if the program does not exist."""
    program = next((entry for entry in db.programs if entry.id == program_id), None)
    if program is None:
        return None
    return build_program_summary(db, program, excluded_institution_ids)


def build_program_summaries_for_partner(
    db: PrototypeDatabase,
    partner_id: str,
    include_related_programs: bool = False,
    excluded_institution_ids: Iterable[str] = (),
) -> List[ProgramSummary]:
    excluded = frozenset(excluded_institution_ids)
    return [
        build_program_summary(db, program, excluded)
        for program in get_programs_for_partner(db, partner_id, include_related_programs)
    ]
