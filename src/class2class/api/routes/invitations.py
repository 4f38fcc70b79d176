"""Invitation routes."""

from fastapi import APIRouter, HTTPException, status

from class2class.core.dependencies import InvitationManagerDep
from class2class.core.exceptions import InvitationStateError, StaleReferenceError
from class2class.schemas.invitation import InvitationOutcome, ProgramInvitation

router = APIRouter(prefix="/api/invitations", tags=["Invitation"])


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def _respond(invitation_manager, invitation_id: str, accept: bool) -> InvitationOutcome:
    try:
        outcome = invitation_manager.respond(invitation_id, accept)
    except InvitationStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except StaleReferenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if outcome is None:
        raise _not_found(f"Invitation {invitation_id} not found.")
    return outcome


@router.get("/token/{token}", response_model=ProgramInvitation, summary="Look up invitation by token")
def get_invitation_by_token(
    token: str, invitation_manager: InvitationManagerDep
) -> ProgramInvitation:
    """Return the invitation carrying the given token."""
    invitation = invitation_manager.find_by_token(token)
    if invitation is None:
        raise _not_found("Invitation not found.")
    return invitation


@router.get("/{invitation_id}", response_model=ProgramInvitation, summary="Get invitation")
def get_invitation(
    invitation_id: str, invitation_manager: InvitationManagerDep
) -> ProgramInvitation:
    """Return one invitation by id."""
    invitation = invitation_manager.get_invitation(invitation_id)
    if invitation is None:
        raise _not_found(f"Invitation {invitation_id} not found.")
    return invitation


@router.post("/{invitation_id}/view", response_model=ProgramInvitation, summary="Mark invitation viewed")
def view_invitation(
    invitation_id: str, invitation_manager: InvitationManagerDep
) -> ProgramInvitation:
    """Record that the recipient opened the invitation."""
    invitation = invitation_manager.mark_viewed(invitation_id)
    if invitation is None:
        raise _not_found(f"Invitation {invitation_id} not found.")
    return invitation


@router.post("/{invitation_id}/accept", response_model=InvitationOutcome, summary="Accept invitation")
def accept_invitation(
    invitation_id: str, invitation_manager: InvitationManagerDep
) -> InvitationOutcome:
    """Accept an invitation.

    Raises:
        HTTPException: 404 if missing, 409 if it was already declined, 400 if
            strict mode rejects a stale reference.
    """
    return _respond(invitation_manager, invitation_id, accept=True)


@router.post("/{invitation_id}/decline", response_model=InvitationOutcome, summary="Decline invitation")
def decline_invitation(
    invitation_id: str, invitation_manager: InvitationManagerDep
) -> InvitationOutcome:
    """Decline an invitation, with the same errors as accepting it."""
    return _respond(invitation_manager, invitation_id, accept=False)
