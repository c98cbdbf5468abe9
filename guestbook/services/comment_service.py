"""
Comment service — submission, listings and moderation.

Design notes
------------
- A comment snapshots the visitor's name and email at submission time;
  renaming a visitor later does not rewrite old comments.
- ``comment_number`` is the visitor's running ordinal.  It is taken from
  a single ``UPDATE visitors SET comment_count = comment_count + 1
  ... RETURNING`` so that concurrent submissions by the same visitor are
  serialised by the database and never share an ordinal.  The comment
  INSERT runs in the same transaction, so the counter and the comment
  commit (or roll back) together.
- Whether new comments start approved is controlled by
  ``settings.AUTO_APPROVE_COMMENTS``.
- The public list is cached in Redis and dropped after the commit of
  every write that can change it.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from guestbook.cache import PUBLIC_COMMENTS_KEY, cache
from guestbook.config import settings
from guestbook.database import after_commit
from guestbook.exceptions import CommentNotFound, MissingMessage, VisitorNotFound
from guestbook.models import MAX_ID, Comment, Visitor, utcnow
from guestbook.services.visitor_service import visitor_to_dict

logger = logging.getLogger(__name__)

_NEWEST_FIRST = (Comment.created_at.desc(), Comment.id.desc())


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _public_comment_to_dict(comment: Comment) -> dict:
    """Public projection: never includes email or ids."""
    return {
        "name": comment.name,
        "message": comment.message,
        "comment_number": comment.comment_number,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
    }


def _own_comment_to_dict(comment: Comment) -> dict:
    data = _public_comment_to_dict(comment)
    data["id"] = comment.id
    data["approved"] = comment.approved
    return data


def _admin_comment_to_dict(comment: Comment) -> dict:
    data = _own_comment_to_dict(comment)
    data["email"] = comment.email
    data["visitor_id"] = comment.visitor_id
    data["visitor"] = visitor_to_dict(comment.visitor) if comment.visitor is not None else None
    return data


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def submit_comment(db: AsyncSession, visitor_id: int, message: str) -> dict:
    """
    Record a new comment by *visitor_id* and advance their comment count.

    Returns ``{"comment_number", "comment"}``.  Raises MissingMessage for a
    blank message and VisitorNotFound when the visitor no longer exists.
    """
    message = (message or "").strip()
    if not message:
        raise MissingMessage()

    now = utcnow()
    counter_q = (
        update(Visitor)
        .where(Visitor.id == visitor_id)
        .values(comment_count=Visitor.comment_count + 1, last_comment_at=now)
        .returning(Visitor.comment_count, Visitor.name, Visitor.email)
    )
    row = (await db.execute(counter_q)).one_or_none()
    if row is None:
        raise VisitorNotFound()

    comment = Comment(
        name=row.name,
        email=row.email,
        message=message,
        approved=settings.AUTO_APPROVE_COMMENTS,
        comment_number=row.comment_count,
        visitor_id=visitor_id,
        created_at=now,
    )
    db.add(comment)
    await db.flush()

    if comment.approved:
        after_commit(db, cache.invalidate_public_comments)

    logger.info(
        "Visitor id=%s submitted comment id=%s (#%s, approved=%s)",
        visitor_id, comment.id, comment.comment_number, comment.approved,
    )
    return {
        "comment_number": comment.comment_number,
        "comment": _own_comment_to_dict(comment),
    }


async def get_public_comments(db: AsyncSession) -> list[dict]:
    """Return the newest approved comments, capped at PUBLIC_COMMENTS_LIMIT."""
    cached = await cache.get(PUBLIC_COMMENTS_KEY)
    if cached is not None:
        return cached

    q = (
        select(Comment)
        .where(Comment.approved.is_(True))
        .order_by(*_NEWEST_FIRST)
        .limit(settings.PUBLIC_COMMENTS_LIMIT)
    )
    result = await db.execute(q)
    comments = [_public_comment_to_dict(c) for c in result.scalars().all()]

    await cache.set(PUBLIC_COMMENTS_KEY, comments, ttl=settings.CACHE_TTL_PUBLIC_COMMENTS)
    return comments


async def get_visitor_comments(db: AsyncSession, visitor_id: int) -> list[dict]:
    """Return every comment owned by *visitor_id*, pending ones included."""
    q = (
        select(Comment)
        .where(Comment.visitor_id == visitor_id)
        .order_by(*_NEWEST_FIRST)
    )
    result = await db.execute(q)
    return [_own_comment_to_dict(c) for c in result.scalars().all()]


async def get_all_comments(db: AsyncSession) -> list[dict]:
    """
    Return every comment regardless of approval, each with its owning
    visitor expanded.  ``joinedload`` fetches the visitors in the same
    query.
    """
    q = (
        select(Comment)
        .options(joinedload(Comment.visitor))
        .order_by(*_NEWEST_FIRST)
    )
    result = await db.execute(q)
    return [_admin_comment_to_dict(c) for c in result.unique().scalars().all()]


async def approve_comment(db: AsyncSession, comment_id: int) -> dict:
    """
    Mark *comment_id* approved and return it.

    Approving an already-approved comment is a successful no-op.  Ids
    outside the primary key range cannot exist and are CommentNotFound.
    """
    if not 1 <= comment_id <= MAX_ID:
        raise CommentNotFound()

    q = (
        select(Comment)
        .where(Comment.id == comment_id)
        .options(joinedload(Comment.visitor))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    comment = result.unique().scalar_one_or_none()
    if comment is None:
        raise CommentNotFound()

    if not comment.approved:
        comment.approved = True
        await db.flush()
        after_commit(db, cache.invalidate_public_comments)
        logger.info("Comment id=%s approved", comment.id)

    return _admin_comment_to_dict(comment)
