"""Partner dashboard routes."""

from typing import List

from fastapi import APIRouter, HTTPException, status

from class2class.config import EXCLUDED_INSTITUTION_IDS
from class2class.core.dependencies import EntityStoreDep
from class2class.schemas.analytics import PartnerAnalytics
from class2class.schemas.database import PrototypeDatabase
from class2class.schemas.partner import Partner
from class2class.schemas.summary import PartnerProgramMetrics, ProgramSummary
from class2class.utils.program_metrics import aggregate_program_metrics, build_partner_analytics
from class2class.utils.program_selectors import build_program_summaries_for_partner

router = APIRouter(prefix="/api/partners", tags=["Partner"])


def _require_partner(db: PrototypeDatabase, partner_id: str) -> Partner:
    partner = next((p for p in db.partners if p.id == partner_id), None)
    if partner is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Partner {partner_id} not found.",
        )
    return partner


@router.get("/{partner_id}", response_model=Partner, summary="Get partner")
def get_partner(partner_id: str, store: EntityStoreDep) -> Partner:
    return _require_partner(store.database, partner_id)


@router.get("/{partner_id}/programs", response_model=List[ProgramSummary], summary="List partner programs")
def list_partner_programs(
    partner_id: str,
    store: EntityStoreDep,
    include_related: bool = False,
) -> List[ProgramSummary]:
    """List summaries of programs the partner hosts.

    With ``include_related`` the list also holds programs where the partner
    is an accepted or invited co-partner.
    """
    db = store.database
    _require_partner(db, partner_id)
    return build_program_summaries_for_partner(
        db, partner_id, include_related, EXCLUDED_INSTITUTION_IDS
    )


@router.get("/{partner_id}/metrics", response_model=PartnerProgramMetrics, summary="Partner totals")
def get_partner_metrics(
    partner_id: str,
    store: EntityStoreDep,
    include_related: bool = True,
) -> PartnerProgramMetrics:
    db = store.database
    _require_partner(db, partner_id)
    summaries = build_program_summaries_for_partner(
        db, partner_id, include_related, EXCLUDED_INSTITUTION_IDS
    )
    return aggregate_program_metrics(summaries)


@router.get("/{partner_id}/analytics", response_model=PartnerAnalytics, summary="Partner analytics")
def get_partner_analytics(
    partner_id: str,
    store: EntityStoreDep,
    include_related: bool = True,
) -> PartnerAnalytics:
    """Schools, country impact, projects, educators and student breakdown."""
    db = store.database
    partner = _require_partner(db, partner_id)
    summaries = build_program_summaries_for_partner(
        db, partner_id, include_related, EXCLUDED_INSTITUTION_IDS
    )
    return build_partner_analytics(
        summaries, db=db, partner=partner, excluded_institution_ids=EXCLUDED_INSTITUTION_IDS
    )
