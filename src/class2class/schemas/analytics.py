"""Analytics view schemas for the partner dashboard."""

from typing import Dict, List, Literal, Optional

from pydantic import Field

from class2class.schemas.base import StoreModel


class SchoolDetail(StoreModel):
    """One physical school, merged by name across program summaries."""

    name: str
    country: str
    flag: str
    city: Optional[str] = None
    students: int = 0
    teachers: int = 0
    project_count: int = 0
    status: Literal["active", "partial", "onboarding"] = "onboarding"


class CountryImpact(StoreModel):
    country: str = Field(description="ISO country code, or 'Unknown'.")
    country_label: str
    flag: str
    institutions: int = 0
    teachers: int = 0
    students: int = 0
    projects: int = 0
    completed_projects: int = 0
    regions: List[str] = Field(default_factory=list)
    engagement_score: float = 3.6


class ProjectDetail(StoreModel):
    name: str
    students_reached: int = 0
    educators_engaged: int = 1
    status: Literal["active", "completed"] = "active"
    partner_school: Optional[str] = None
    country: str = ""
    flag: str = ""


class EducatorDetail(StoreModel):
    name: str
    subject: str = "General"
    school: str = "Unknown"
    country: str = ""
    flag: str = ""
    project_count: int = 0
    project: Optional[str] = None


class StudentBreakdown(StoreModel):
    program: str
    students: int = 0
    schools: int = 0
    countries: int = 0
    partners: str = Field(default="", description="Country labels with flags.")


class FocusTotals(StoreModel):
    institutions: int = 0
    programs: int = 0


class PartnerAnalytics(StoreModel):
    """Everything the analytics page renders for one partner."""

    schools: List[SchoolDetail] = Field(default_factory=list)
    countries: List[CountryImpact] = Field(default_factory=list)
    projects: List[ProjectDetail] = Field(default_factory=list)
    educators: List[EducatorDetail] = Field(default_factory=list)
    student_breakdown: List[StudentBreakdown] = Field(default_factory=list)
    students_total: int = 0
    focus_countries: List[str] = Field(default_factory=list)
    focus_totals: FocusTotals = Field(default_factory=FocusTotals)
    educators_by_project: Dict[str, List[str]] = Field(default_factory=dict)
