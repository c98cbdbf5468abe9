from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guestbook.database import Base

ROLE_VISITOR = "visitor"
ROLE_ADMIN = "admin"
ROLES = (ROLE_VISITOR, ROLE_ADMIN)

# Upper bound of the Integer primary keys (PostgreSQL int4).
MAX_ID = 2**31 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Visitor
# ---------------------------------------------------------------------------
class Visitor(Base):
    __tablename__ = "visitors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    # Uniqueness is enforced here; login races surface as IntegrityError.
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), default=ROLE_VISITOR, nullable=False)
    comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_comment_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    # lazy="raise": services must joinedload/selectinload what they serialise
    comments: Mapped[List["Comment"]] = relationship(
        "Comment", back_populates="visitor", lazy="raise"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    __table_args__ = (
        # Public feed: approved comments, newest first
        Index("ix_comments_approved_created_at", "approved", "created_at"),
        # "My comments": one visitor's comments, newest first
        Index("ix_comments_visitor_id_created_at", "visitor_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # name/email are a snapshot taken at submission time
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    comment_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    # No ondelete cascade: visitors are never deleted and comments outlive them.
    visitor_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("visitors.id"), nullable=True
    )

    visitor: Mapped[Optional["Visitor"]] = relationship(
        "Visitor", back_populates="comments", lazy="raise"
    )
