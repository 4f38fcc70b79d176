"""Program metrics and dashboard analytics.

Rollups are computed from already-resolved program summaries. Every function
here is total: missing rows contribute nothing instead of raising.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from class2class.schemas.analytics import (
    CountryImpact,
    EducatorDetail,
    FocusTotals,
    PartnerAnalytics,
    ProjectDetail,
    SchoolDetail,
    StudentBreakdown,
)
from class2class.schemas.database import PrototypeDatabase
from class2class.schemas.invitation import ProgramInvitation
from class2class.schemas.partner import Partner
from class2class.schemas.program import (
    CountryCoordinator,
    EducationalInstitution,
    InstitutionTeacher,
    ProgramProject,
)
from class2class.schemas.summary import (
    CoPartnerEntry,
    PartnerProgramMetrics,
    ProgramSummary,
    ProgramSummaryMetrics,
)
from class2class.utils.countries import get_country_display

logger = logging.getLogger(__name__)

# Engagement heuristic shown on the impact map
BASE_ENGAGEMENT_SCORE = 4.0
COMPLETION_ENGAGEMENT_WEIGHT = 0.5
DEFAULT_ENGAGEMENT_SCORE = 3.6


def compute_metrics(
    co_partners: Sequence[CoPartnerEntry],
    coordinators: Sequence[CountryCoordinator],
    institutions: Sequence[EducationalInstitution],
    teachers: Sequence[InstitutionTeacher],
    projects: Sequence[ProgramProject],
    invitations: Sequence[ProgramInvitation],
) -> ProgramSummaryMetrics:
    """Rollup counts for one program summary.

    Student counts are summed per program; an institution that also appears
    in another program is counted again in that program's summary.
    """
    countries: List[str] = []
    for institution in institutions:
        if institution.country and institution.country not in countries:
            countries.append(institution.country)

    return ProgramSummaryMetrics(
        student_count=sum(institution.student_count or 0 for institution in institutions),
        institution_count=len({institution.id for institution in institutions}),
        active_institution_count=sum(
            1 for institution in institutions if institution.status == "active"
        ),
        teacher_count=len({teacher.id for teacher in teachers}),
        coordinator_count=len(coordinators),
        co_partner_count=sum(
            1 for entry in co_partners if entry.relationship.status == "accepted"
        ),
        project_count=len(projects),
        pending_invitations=sum(
            1 for invitation in invitations if invitation.status == "pending"
        ),
        countries=countries,
    )


def aggregate_program_metrics(summaries: Sequence[ProgramSummary]) -> PartnerProgramMetrics:
    """Sum per-program metrics into one partner-level rollup."""
    totals = PartnerProgramMetrics(total_programs=len(summaries))
    countries = set()
    for summary in summaries:
        metrics = summary.metrics
        totals.co_partners += metrics.co_partner_count
        totals.coordinators += metrics.coordinator_count
        totals.institutions += metrics.institution_count
        totals.teachers += metrics.teacher_count
        totals.students += metrics.student_count
        totals.projects += metrics.project_count
        totals.pending_invitations += metrics.pending_invitations
        countries.update(metrics.countries)
        if summary.program.status == "active":
            totals.active_programs += 1
    totals.country_count = len(countries)
    return totals


def engagement_score(teachers: int, projects: int, completed_projects: int) -> float:
    """Display heuristic for a country's engagement, not a measured value."""
    if teachers > 0 and projects > 0:
        return BASE_ENGAGEMENT_SCORE + (
            completed_projects / max(projects, 1)
        ) * COMPLETION_ENGAGEMENT_WEIGHT
    return DEFAULT_ENGAGEMENT_SCORE


def school_status(teachers: int, project_count: int) -> str:
    if teachers > 0 and project_count > 1:
        return "active"
    if teachers > 0 or project_count > 0:
        return "partial"
    return "onboarding"


def _creator_institution_id(
    project: ProgramProject, teachers_by_id: Dict[str, InstitutionTeacher]
) -> Optional[str]:
    creator = teachers_by_id.get(project.created_by_id)
    return creator.institution_id if creator else None


def build_school_details(
    summaries: Sequence[ProgramSummary],
    excluded_institution_ids: Iterable[str] = (),
) -> List[SchoolDetail]:
    """Merge institutions into schools by name.

    Two institutions with the same name are one school: teacher and project
    counts are summed, the student count is the largest one seen.
    """
    excluded = frozenset(excluded_institution_ids)
    schools: Dict[str, dict] = {}

    for summary in summaries:
        teachers_by_id = {teacher.id: teacher for teacher in summary.teachers}
        for institution in summary.institutions:
            if institution.id in excluded:
                continue
            teacher_count = sum(
                1 for t in summary.teachers if t.institution_id == institution.id
            )
            project_count = sum(
                1
                for project in summary.projects
                if _creator_institution_id(project, teachers_by_id) == institution.id
            )

            existing = schools.get(institution.name)
            if existing:
                if institution.id not in existing["ids"]:
                    existing["ids"].add(institution.id)
                    existing["teachers"] += teacher_count
                    existing["project_count"] += project_count
                    existing["students"] = max(
                        existing["students"], institution.student_count or 0
                    )
                continue

            country = get_country_display(institution.country)
            schools[institution.name] = {
                "ids": {institution.id},
                "name": institution.name,
                "country": country.name,
                "flag": country.flag,
                "city": institution.city,
                "students": institution.student_count or 0,
                "teachers": teacher_count,
                "project_count": project_count,
            }

    details = [
        SchoolDetail(
            name=entry["name"],
            country=entry["country"],
            flag=entry["flag"],
            city=entry["city"],
            students=entry["students"],
            teachers=entry["teachers"],
            project_count=entry["project_count"],
            status=school_status(entry["teachers"], entry["project_count"]),
        )
        for entry in schools.values()
    ]
    details = [school for school in details if school.teachers > 0 or school.students > 0]
    return sorted(details, key=lambda school: -school.students)


def build_country_impact(
    summaries: Sequence[ProgramSummary],
    db: Optional[PrototypeDatabase] = None,
    excluded_institution_ids: Iterable[str] = (),
) -> List[CountryImpact]:
    """Per-country rollup across every summary of a partner.

    Institutions, teachers and projects are counted as id sets, so a row
    reached from two programs counts once. Students are a plain sum.
    Sorted by students, then projects, both descending.
    """
    excluded = frozenset(excluded_institution_ids)
    stats: Dict[str, dict] = {}

    def ensure_entry(country_code: str) -> dict:
        key = country_code or "Unknown"
        entry = stats.get(key)
        if entry is None:
            entry = {
                "institutions": set(),
                "teachers": set(),
                "projects": set(),
                "regions": set(),
                "students": 0,
                "completed_projects": 0,
            }
            stats[key] = entry
        return entry

    institution_index = {i.id: i for i in db.institutions} if db else {}
    teacher_index = {t.id: t for t in db.institution_teachers} if db else {}

    for summary in summaries:
        summary_institutions = {i.id: i for i in summary.institutions}
        summary_teachers = {t.id: t for t in summary.teachers}

        def resolve_institution(institution_id: str) -> Optional[EducationalInstitution]:
            return summary_institutions.get(institution_id) or institution_index.get(
                institution_id
            )

        for institution in summary.institutions:
            if institution.id in excluded or not institution.country:
                continue
            entry = ensure_entry(institution.country)
            entry["institutions"].add(institution.id)
            entry["students"] += institution.student_count or 0
            if institution.region:
                entry["regions"].add(institution.region)

        for teacher in summary.teachers:
            institution = resolve_institution(teacher.institution_id)
            if institution and institution.country and institution.id not in excluded:
                ensure_entry(institution.country)["teachers"].add(teacher.id)

        for project in summary.projects:
            teacher = summary_teachers.get(project.created_by_id) or teacher_index.get(
                project.created_by_id
            )
            if teacher is None:
                continue
            institution = resolve_institution(teacher.institution_id)
            if institution and institution.country and institution.id not in excluded:
                entry = ensure_entry(institution.country)
                entry["projects"].add(project.id)
                if project.status == "completed":
                    entry["completed_projects"] += 1

    impact = []
    for country, entry in stats.items():
        display = get_country_display(country)
        teachers = len(entry["teachers"])
        projects = len(entry["projects"])
        impact.append(
            CountryImpact(
                country=country,
                country_label=display.name,
                flag=display.flag,
                institutions=len(entry["institutions"]),
                teachers=teachers,
                students=entry["students"],
                projects=projects,
                completed_projects=entry["completed_projects"],
                regions=sorted(entry["regions"]),
                engagement_score=engagement_score(
                    teachers, projects, entry["completed_projects"]
                ),
            )
        )
    return sorted(impact, key=lambda item: (-item.students, -item.projects))


def build_project_details(
    summaries: Sequence[ProgramSummary],
    db: Optional[PrototypeDatabase] = None,
    excluded_institution_ids: Iterable[str] = (),
) -> List[ProjectDetail]:
    excluded = frozenset(excluded_institution_ids)
    templates = {t.id: t for t in db.program_templates} if db else {}
    details = []

    for summary in summaries:
        teachers_by_id = {teacher.id: teacher for teacher in summary.teachers}
        institutions_by_id = {i.id: i for i in summary.institutions}
        for index, project in enumerate(summary.projects):
            creator = teachers_by_id.get(project.created_by_id)
            institution = institutions_by_id.get(creator.institution_id) if creator else None
            display = get_country_display(institution.country) if institution and institution.country else None

            project_teachers = []
            if creator and creator.institution_id not in excluded:
                project_teachers = [
                    t for t in summary.teachers if t.institution_id == creator.institution_id
                ]

            template = templates.get(project.template_id) if project.template_id else None
            name = (
                (template.title if template else None)
                or project.title
                or f"{summary.program.name} Project {index + 1}"
            )

            details.append(
                ProjectDetail(
                    name=name,
                    students_reached=institution.student_count if institution else 0,
                    educators_engaged=len(project_teachers) or 1,
                    status="completed" if project.status == "completed" else "active",
                    partner_school=institution.name if institution else None,
                    country=display.name if display else "",
                    flag=display.flag if display else "",
                )
            )

    return sorted(details, key=lambda detail: -detail.students_reached)


def build_educator_details(
    summaries: Sequence[ProgramSummary],
    db: Optional[PrototypeDatabase] = None,
    excluded_institution_ids: Iterable[str] = (),
) -> List[EducatorDetail]:
    """One entry per educator, merged by full name and school."""
    excluded = frozenset(excluded_institution_ids)
    templates = {t.id: t for t in db.program_templates} if db else {}
    educators: Dict[str, EducatorDetail] = {}

    for summary in summaries:
        teachers_by_id = {teacher.id: teacher for teacher in summary.teachers}
        institutions_by_id = {i.id: i for i in summary.institutions}
        for teacher in summary.teachers:
            if teacher.institution_id in excluded:
                continue
            project_count = sum(
                1 for project in summary.projects if project.created_by_id == teacher.id
            )
            institution = institutions_by_id.get(teacher.institution_id)
            school = institution.name if institution else "Unknown"
            key = f"{teacher.full_name.lower()}-{school.lower()}"

            if key in educators:
                educators[key].project_count += project_count
                continue

            associated = next(
                (
                    project
                    for project in summary.projects
                    if _creator_institution_id(project, teachers_by_id)
                    == teacher.institution_id
                ),
                None,
            )
            project_name = None
            if associated:
                template = templates.get(associated.template_id) if associated.template_id else None
                project_name = template.title if template else f"{summary.program.name} Project"

            display = (
                get_country_display(institution.country)
                if institution and institution.country
                else None
            )
            educators[key] = EducatorDetail(
                name=teacher.full_name,
                subject=teacher.subject or "General",
                school=school,
                country=display.name if display else "",
                flag=display.flag if display else "",
                project_count=project_count,
                project=project_name,
            )

    return sorted(educators.values(), key=lambda educator: -educator.project_count)


def group_educators_by_project(educators: Iterable[EducatorDetail]) -> Dict[str, List[str]]:
    groups: Dict[str, List[str]] = {}
    for educator in educators:
        names = groups.setdefault(educator.project or "Onboarding", [])
        if educator.name not in names:
            names.append(educator.name)
    return groups


def build_student_breakdown(
    summaries: Sequence[ProgramSummary],
    excluded_institution_ids: Iterable[str] = (),
) -> List[StudentBreakdown]:
    excluded = frozenset(excluded_institution_ids)
    breakdown = []
    for summary in summaries:
        institutions = [i for i in summary.institutions if i.id not in excluded]
        countries: List[str] = []
        for institution in institutions:
            if institution.country and institution.country not in countries:
                countries.append(institution.country)
        labels = []
        for country in countries:
            display = get_country_display(country)
            labels.append(f"{display.name} {display.flag}")
        breakdown.append(
            StudentBreakdown(
                program=summary.program.name,
                students=sum(i.student_count or 0 for i in institutions),
                schools=len(institutions),
                countries=len(countries),
                partners=" · ".join(labels),
            )
        )
    return sorted(breakdown, key=lambda entry: -entry.students)


def focus_countries(
    summaries: Sequence[ProgramSummary], partner: Optional[Partner] = None
) -> List[str]:
    """The partner's own country, or every institution country if unset."""
    if partner and partner.country:
        return [partner.country]
    countries: List[str] = []
    for summary in summaries:
        for institution in summary.institutions:
            if institution.country and institution.country not in countries:
                countries.append(institution.country)
    return countries


def focus_totals(summaries: Sequence[ProgramSummary], countries: Iterable[str]) -> FocusTotals:
    """Schools (distinct by name) and programs active in the focus countries."""
    focus = frozenset(countries)
    names = set()
    programs = set()
    for summary in summaries:
        for institution in summary.institutions:
            if institution.country not in focus:
                continue
            programs.add(summary.program.id)
            name = (institution.name or "").strip()
            if name:
                names.add(name.lower())
    return FocusTotals(institutions=len(names), programs=len(programs))


def build_partner_analytics(
    summaries: Sequence[ProgramSummary],
    db: Optional[PrototypeDatabase] = None,
    partner: Optional[Partner] = None,
    excluded_institution_ids: Iterable[str] = (),
) -> PartnerAnalytics:
    """Every analytics view for one partner's program summaries."""
    excluded = frozenset(excluded_institution_ids)
    educators = build_educator_details(summaries, db, excluded)
    breakdown = build_student_breakdown(summaries, excluded)
    countries = focus_countries(summaries, partner)
    analytics = PartnerAnalytics(
        schools=build_school_details(summaries, excluded),
        countries=build_country_impact(summaries, db, excluded),
        projects=build_project_details(summaries, db, excluded),
        educators=educators,
        student_breakdown=breakdown,
        students_total=sum(entry.students for entry in breakdown),
        focus_countries=countries,
        focus_totals=focus_totals(summaries, countries),
        educators_by_project=group_educators_by_project(educators),
    )
    logger.debug(
        "Built analytics for %d summaries (%d schools, %d countries)",
        len(summaries),
        len(analytics.schools),
        len(analytics.countries),
    )
    return analytics
