from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from guestbook.database import get_db
from guestbook.exceptions import AdminRequired, MissingToken
from guestbook.middleware import STATE_ACCESS, STATE_VISITOR_ID
from guestbook.models import ROLE_ADMIN
from guestbook.services import visitor_service
from guestbook.sessions import SessionClaims, get_session_issuer

# auto_error=False: a missing header must raise MissingToken (401) rather
# than FastAPI's built-in response.
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_visitor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> SessionClaims:
    """
    FastAPI dependency for visitor-only endpoints.

    Usage in a router::

        @router.get("/my-comments")
        async def my_comments(claims: SessionClaims = Depends(get_current_visitor)):
            ...

    Raises MissingToken without an ``Authorization: Bearer`` header and
    InvalidToken when the token does not verify.  The visitor id and the
    granted access level are recorded on ``request.state`` for the access
    log.
    """
    if credentials is None or not credentials.credentials:
        raise MissingToken()
    claims = get_session_issuer().verify(credentials.credentials)
    setattr(request.state, STATE_VISITOR_ID, claims.visitorId)
    setattr(request.state, STATE_ACCESS, "visitor")
    return claims


async def require_admin(
    request: Request,
    claims: SessionClaims = Depends(get_current_visitor),
    db: AsyncSession = Depends(get_db),
) -> SessionClaims:
    """
    FastAPI dependency for admin-only endpoints.

    The role is read from the database on every call; the ``role`` claim
    in the token is ignored so that demotions apply immediately.
    """
    visitor = await visitor_service.get_by_id(db, claims.visitorId)
    if visitor is None or visitor.role != ROLE_ADMIN:
        setattr(request.state, STATE_ACCESS, "denied")
        raise AdminRequired()
    setattr(request.state, STATE_ACCESS, "admin")
    return claims
