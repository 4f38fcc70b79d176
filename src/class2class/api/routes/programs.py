"""Program routes."""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from class2class.config import EXCLUDED_INSTITUTION_IDS
from class2class.core.dependencies import (
    EntityStoreDep,
    InvitationManagerDep,
    ProgramManagerDep,
)
from class2class.core.exceptions import InvitationStateError, StaleReferenceError
from class2class.schemas.invitation import (
    CoordinatorInvitation,
    CoPartnerInvitation,
    ProgramInvitation,
)
from class2class.schemas.program import Program
from class2class.schemas.requests import (
    CoordinatorInviteRequest,
    CoPartnerInviteRequest,
    CreateProgramRequest,
)
from class2class.schemas.summary import ProgramSummary
from class2class.utils.program_selectors import find_program_summary_by_id

router = APIRouter(prefix="/api/programs", tags=["Program"])


def _require_program(store, program_id: str) -> Program:
    program = store.get_by_id("programs", program_id)
    if program is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Program {program_id} not found.",
        )
    return program


@router.post("", response_model=Program, status_code=status.HTTP_201_CREATED, summary="Create program")
def create_program(req: CreateProgramRequest, program_manager: ProgramManagerDep) -> Program:
    try:
        return program_manager.create_program(req.partner_id, req, req.created_by)
    except StaleReferenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/{program_id}/summary", response_model=ProgramSummary, summary="Program summary")
def get_program_summary(
    program_id: str,
    store: EntityStoreDep,
    exclude: Optional[List[str]] = Query(default=None, description="Institution ids to leave out."),
) -> ProgramSummary:
    """Return a program with all related rows and its metrics.

    Institutions configured in ``EXCLUDED_INSTITUTION_IDS`` are always left
    out, in addition to any passed with ``exclude``.
    """
    excluded = EXCLUDED_INSTITUTION_IDS.union(exclude or [])
    summary = find_program_summary_by_id(store.database, program_id, excluded)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Program {program_id} not found.",
        )
    return summary


@router.delete("/{program_id}", summary="Delete program and related rows")
def delete_program(program_id: str, program_manager: ProgramManagerDep) -> dict:
    if not program_manager.delete_program(program_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Program {program_id} not found.",
        )
    return {"deleted": True, "programId": program_id}


@router.get("/{program_id}/invitations", response_model=List[ProgramInvitation], summary="List invitations")
def list_invitations(
    program_id: str,
    store: EntityStoreDep,
    invitation_manager: InvitationManagerDep,
    invitation_type: Optional[str] = Query(default=None, alias="type"),
) -> List[ProgramInvitation]:
    _require_program(store, program_id)
    return invitation_manager.list_for_program(program_id, invitation_type)


@router.post(
    "/{program_id}/invitations/co-partner",
    response_model=CoPartnerInvitation,
    status_code=status.HTTP_201_CREATED,
    summary="Invite a co-partner",
)
def invite_co_partner(
    program_id: str,
    req: CoPartnerInviteRequest,
    store: EntityStoreDep,
    invitation_manager: InvitationManagerDep,
) -> CoPartnerInvitation:
    """Send a co-partner invitation.

    Raises:
        HTTPException: 404 if the program is missing, 409 if the partner
            already hosts it, 400 for stale references.
    """
    _require_program(store, program_id)
    try:
        return invitation_manager.invite_co_partner(
            program_id,
            req.partner_id,
            req.recipient_email,
            role=req.role,
            sent_by=req.sent_by,
            recipient_name=req.recipient_name,
            custom_message=req.custom_message,
            permissions=req.permissions,
        )
    except InvitationStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except StaleReferenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post(
    "/{program_id}/invitations/coordinator",
    response_model=CoordinatorInvitation,
    status_code=status.HTTP_201_CREATED,
    summary="Invite a country coordinator",
)
def invite_coordinator(
    program_id: str,
    req: CoordinatorInviteRequest,
    store: EntityStoreDep,
    invitation_manager: InvitationManagerDep,
) -> CoordinatorInvitation:
    _require_program(store, program_id)
    try:
        return invitation_manager.invite_coordinator(
            program_id,
            req.recipient_email,
            req.first_name,
            req.last_name,
            req.country,
            invited_by=req.invited_by,
            region=req.region,
            custom_message=req.custom_message,
            phone_number=req.phone_number,
        )
    except StaleReferenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
