"""Current-user session storage and partner resolution.

A single session is kept under one key of the key-value medium. Dashboards
use it to work out which partner row the signed-in user represents.
"""

import json
import logging
import re
from datetime import datetime, timedelta
from typing import Optional

import pytz
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from class2class.config import SESSION_STORAGE_KEY, SESSION_TTL_HOURS
from class2class.schemas.database import PrototypeDatabase
from class2class.schemas.partner import Partner
from class2class.schemas.session import PartnerContext, UserSession
from class2class.utils.storage import KeyValueStorage

logger = logging.getLogger(__name__)

# Organization name spellings folded together before matching
ORGANIZATION_SYNONYMS = {"save the children": "stc"}


class SessionStore:
    """Manages the stored session of the current user."""

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: str = SESSION_STORAGE_KEY,
        ttl_hours: int = SESSION_TTL_HOURS,
    ):
        self.storage = storage
        self.storage_key = storage_key
        self.ttl = timedelta(hours=ttl_hours)

    def create_session(
        self,
        email: str,
        role: str,
        organization: Optional[str] = None,
        name: Optional[str] = None,
    ) -> UserSession:
        """Store a fresh session, replacing any previous one.

        Raises:
            pydantic.ValidationError: If the role is not partner, teacher or student.
        """
        session = UserSession(
            email=email, role=role, organization=organization, name=name
        )
        self.storage.set_item(self.storage_key, session.model_dump_json(by_alias=True))
        logger.info("Created %s session for %s", role, email)
        return session

    def get_current_session(self, now: Optional[datetime] = None) -> Optional[UserSession]:
        """Return the stored session while it is still valid.

        Expired or unreadable sessions are removed and None is returned.
        """
        try:
            raw = self.storage.get_item(self.storage_key)
        except SQLAlchemyError as exc:
            logger.warning("Failed to read session: %s", exc)
            return None
        if not raw:
            return None

        try:
            session = UserSession.model_validate(json.loads(raw))
            login_time = datetime.fromisoformat(session.login_time.replace("Z", "+00:00"))
        except (json.JSONDecodeError, ValidationError, ValueError) as exc:
            logger.warning("Discarding unreadable session: %s", exc)
            self.clear_session()
            return None

        if login_time.tzinfo is None:
            login_time = pytz.utc.localize(login_time)
        if (now or datetime.now(pytz.utc)) - login_time > self.ttl:
            logger.info("Session for %s expired", session.email)
            self.clear_session()
            return None
        return session

    def clear_session(self) -> None:
        self.storage.remove_item(self.storage_key)


def normalize_organization(value: Optional[str]) -> str:
    """Lowercase, fold known synonyms and collapse punctuation to single spaces."""
    key = (value or "").strip().lower()
    for phrase, replacement in ORGANIZATION_SYNONYMS.items():
        key = key.replace(phrase, replacement)
    return re.sub(r"[^a-z0-9]+", " ", key).strip()


def _match_organization(
    db: PrototypeDatabase, organization: Optional[str]
) -> Optional[Partner]:
    key = normalize_organization(organization)
    if not key:
        return None

    candidates = [
        (normalize_organization(partner.organization_name), partner)
        for partner in db.partners
    ]
    for partner_key, partner in candidates:
        if partner_key == key:
            return partner
    for partner_key, partner in candidates:
        if partner_key and (key in partner_key or partner_key in key):
            return partner
    logger.debug("No partner matches organization %r", organization)
    return None


def resolve_partner_context(
    db: PrototypeDatabase, session: Optional[UserSession]
) -> Optional[PartnerContext]:
    """Find the partner, and partner user, a partner session belongs to.

    A partner user whose email equals the session email (case-insensitive)
    decides the partner through its ``partner_id``. Otherwise the session
    organization is matched against partner names, exact key first, then
    containment in either direction.
    """
    if session is None or session.role != "partner":
        return None

    email = (session.email or "").strip().lower()
    partners = {partner.id: partner for partner in db.partners}
    for user in db.partner_users:
        if not email or user.email.strip().lower() != email:
            continue
        partner = partners.get(user.partner_id)
        if partner is not None:
            return PartnerContext(partner=partner, partner_user=user)
        logger.warning(
            "Partner user %s references missing partner %s", user.id, user.partner_id
        )

    partner = _match_organization(db, session.organization)
    if partner is None:
        return None
    return PartnerContext(partner=partner)


def resolve_partner_for_session(
    db: PrototypeDatabase, session: Optional[UserSession]
) -> Optional[Partner]:
    """Find the partner row a partner session belongs to."""
    context = resolve_partner_context(db, session)
    return context.partner if context else None
