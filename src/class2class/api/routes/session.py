"""Current-user session routes."""

from typing import Optional

from fastapi import APIRouter, HTTPException, status

from class2class.core.dependencies import EntityStoreDep, SessionStoreDep
from class2class.schemas.requests import CreateSessionRequest
from class2class.schemas.session import PartnerContext, UserSession
from class2class.utils.session_store import resolve_partner_context

router = APIRouter(prefix="/api/session", tags=["Session"])


@router.post("", response_model=UserSession, status_code=status.HTTP_201_CREATED, summary="Sign in")
def create_session(req: CreateSessionRequest, session_store: SessionStoreDep) -> UserSession:
    """Store a new session for the signing-in user, replacing any previous one."""
    return session_store.create_session(req.email, req.role, req.organization, req.name)


@router.get("", response_model=Optional[UserSession], summary="Current session")
def get_session(session_store: SessionStoreDep) -> Optional[UserSession]:
    """Return the current session, or null when none is valid."""
    return session_store.get_current_session()


@router.get("/partner", response_model=PartnerContext, summary="Partner of the current session")
def get_session_partner(session_store: SessionStoreDep, store: EntityStoreDep) -> PartnerContext:
    """Return the partner the session represents and its matching partner user."""
    context = resolve_partner_context(store.database, session_store.get_current_session())
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No partner matches the current session.",
        )
    return context


@router.delete("", summary="Sign out")
def delete_session(session_store: SessionStoreDep) -> dict:
    """Remove the stored session."""
    session_store.clear_session()
    return {"status": "ok"}
