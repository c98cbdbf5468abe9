"""
Session tokens — signed JWTs carrying the visitor's identity and role.

Tokens are self-contained and never stored server-side, so a token keeps
its claims (including a stale name or role) until it expires.  The admin
gate therefore re-reads the role from the database instead of trusting
the ``role`` claim.
"""
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import jwt
from pydantic import BaseModel, ValidationError as PydanticValidationError

from guestbook.config import settings
from guestbook.exceptions import ConfigurationError, InvalidToken


class SessionClaims(BaseModel):
    visitorId: int
    email: str
    name: str
    commentCount: int
    role: str
    iat: int
    exp: int


class SessionIssuer:
    def __init__(self, secret: str, algorithm: str = "HS256", ttl: timedelta = timedelta(hours=24)) -> None:
        if not secret:
            raise ConfigurationError("SECRET_KEY must be set to sign session tokens")
        self._secret = secret
        self._algorithm = algorithm
        self.ttl = ttl

    def issue(self, visitor, *, issued_at: datetime | None = None) -> str:
        """Return a signed token for *visitor*, valid for ``self.ttl``."""
        issued_at = issued_at or datetime.now(timezone.utc)
        payload = {
            "visitorId": visitor.id,
            "email": visitor.email,
            "name": visitor.name,
            "commentCount": visitor.comment_count,
            "role": visitor.role,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> SessionClaims:
        """
        Return the claims embedded in *token*.

        Raises InvalidToken for malformed, expired or badly signed tokens,
        and for tokens that lack any of the expected claims.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat"]},
            )
            return SessionClaims.model_validate(payload)
        except jwt.ExpiredSignatureError:
            raise InvalidToken("Token has expired")
        except (jwt.InvalidTokenError, PydanticValidationError):
            raise InvalidToken()


@lru_cache
def get_session_issuer() -> SessionIssuer:
    """Process-wide issuer built from settings; first call happens at startup."""
    return SessionIssuer(
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        ttl=timedelta(hours=settings.TOKEN_TTL_HOURS),
    )
