"""
Visitor service — identity and session issuance for site visitors.

Login and registration are one operation keyed by email: an unseen email
registers a new visitor (a name is then required), a known email logs in.
Either way the caller gets a fresh session token built from the stored
visitor as it is after this call.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from guestbook.exceptions import (
    DuplicateEmail,
    MissingEmail,
    MissingName,
    ValidationError,
    VisitorNotFound,
)
from guestbook.models import ROLE_VISITOR, ROLES, Visitor, utcnow
from guestbook.sessions import get_session_issuer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def visitor_to_dict(visitor: Visitor) -> dict:
    """Summary shape shared by login responses and admin listings."""
    return {
        "id": visitor.id,
        "name": visitor.name,
        "email": visitor.email,
        "comment_count": visitor.comment_count,
        "role": visitor.role,
    }


def _profile_to_dict(visitor: Visitor) -> dict:
    data = visitor_to_dict(visitor)
    data["last_comment_at"] = visitor.last_comment_at.isoformat() if visitor.last_comment_at else None
    data["created_at"] = visitor.created_at.isoformat() if visitor.created_at else None
    return data


def _session_payload(visitor: Visitor, message: str) -> dict:
    return {
        "message": message,
        "token": get_session_issuer().issue(visitor),
        "visitor": visitor_to_dict(visitor),
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_by_email(db: AsyncSession, email: str) -> Visitor | None:
    result = await db.execute(select(Visitor).where(Visitor.email == email))
    return result.scalar_one_or_none()


async def get_by_id(db: AsyncSession, visitor_id: int) -> Visitor | None:
    return await db.get(Visitor, visitor_id)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def login(db: AsyncSession, email: str, name: str | None = None) -> dict:
    """
    Log in the visitor owning *email*, registering them first if needed.

    A known visitor's stored name is replaced when a different non-empty
    *name* is supplied; role and comment count are never touched here.

    Raises MissingEmail, MissingName (unseen email without a name) and
    DuplicateEmail when a concurrent request registered the same email
    first; the caller should then retry, which succeeds as a login.
    """
    email = (email or "").strip()
    name = (name or "").strip() or None
    if not email:
        raise MissingEmail()

    visitor = await get_by_email(db, email)

    if visitor is None:
        if name is None:
            raise MissingName("Name is required for new visitors")

        visitor = Visitor(
            name=name,
            email=email,
            role=ROLE_VISITOR,
            comment_count=0,
            created_at=utcnow(),
        )
        db.add(visitor)
        try:
            await db.flush()
        except IntegrityError:
            logger.info("Concurrent registration lost the race for %s", email)
            raise DuplicateEmail()
        logger.info("Registered visitor id=%s", visitor.id)
    elif name is not None and name != visitor.name:
        visitor.name = name
        await db.flush()

    return _session_payload(visitor, "Visitor login successful")


async def get_profile(db: AsyncSession, visitor_id: int) -> dict:
    visitor = await get_by_id(db, visitor_id)
    if visitor is None:
        raise VisitorNotFound()
    return _profile_to_dict(visitor)


async def update_profile(db: AsyncSession, visitor_id: int, name: str) -> dict:
    """
    Rename the visitor and return a re-issued token.

    Tokens issued before the rename keep the old name until they expire.
    """
    name = (name or "").strip()
    if not name:
        raise MissingName()

    visitor = await get_by_id(db, visitor_id)
    if visitor is None:
        raise VisitorNotFound()

    if visitor.name != name:
        visitor.name = name
        await db.flush()

    return _session_payload(visitor, "Profile updated successfully")


async def set_role(db: AsyncSession, email: str, role: str) -> dict:
    """
    Change the role of the visitor owning *email*.

    Takes effect on the visitor's next admin-gated request; existing
    tokens do not need to be re-issued.
    """
    if role not in ROLES:
        raise ValidationError(f"Unknown role {role!r}; expected one of {', '.join(ROLES)}")

    visitor = await get_by_email(db, email)
    if visitor is None:
        raise VisitorNotFound()

    if visitor.role != role:
        previous = visitor.role
        visitor.role = role
        await db.flush()
        logger.info("Visitor id=%s role changed %s -> %s", visitor.id, previous, role)

    return visitor_to_dict(visitor)
