from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from guestbook.database import get_db
from guestbook.dependencies import get_current_visitor, require_admin
from guestbook.schemas import (
    AdminComment,
    ApproveResponse,
    CommentCreate,
    CommentSubmitResponse,
    OwnComment,
    PublicComment,
)
from guestbook.services import comment_service
from guestbook.sessions import SessionClaims

router = APIRouter(prefix="/api/comments", tags=["comments"])

@router.post("", status_code=201, response_model=CommentSubmitResponse)
async def submit_comment(
    data: CommentCreate,
    claims: SessionClaims = Depends(get_current_visitor),
    db: AsyncSession = Depends(get_db),
):
    result = await comment_service.submit_comment(db, claims.visitorId, data.message)
    return {"message": "Comment submitted successfully", **result}

@router.get("", response_model=list[PublicComment])
async def list_public_comments(db: AsyncSession = Depends(get_db)):
    return await comment_service.get_public_comments(db)

@router.get("/my-comments", response_model=list[OwnComment])
async def list_my_comments(
    claims: SessionClaims = Depends(get_current_visitor),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.get_visitor_comments(db, claims.visitorId)

@router.get("/admin", response_model=list[AdminComment], dependencies=[Depends(require_admin)])
async def list_all_comments(db: AsyncSession = Depends(get_db)):
    return await comment_service.get_all_comments(db)

@router.put("/{comment_id}/approve", response_model=ApproveResponse, dependencies=[Depends(require_admin)])
async def approve_comment(comment_id: int, db: AsyncSession = Depends(get_db)):
    comment = await comment_service.approve_comment(db, comment_id)
    return {"message": "Comment approved", "comment": comment}
