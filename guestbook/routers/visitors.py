from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from guestbook.database import get_db
from guestbook.dependencies import get_current_visitor
from guestbook.schemas import LoginRequest, ProfileUpdate, SessionResponse, VisitorProfile
from guestbook.services import visitor_service
from guestbook.sessions import SessionClaims

router = APIRouter(prefix="/api/visitor", tags=["visitor"])

@router.post("/login", response_model=SessionResponse)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await visitor_service.login(db, data.email, data.name)

@router.get("/profile", response_model=VisitorProfile)
async def get_profile(
    claims: SessionClaims = Depends(get_current_visitor),
    db: AsyncSession = Depends(get_db),
):
    return await visitor_service.get_profile(db, claims.visitorId)

@router.put("/profile", response_model=SessionResponse)
async def update_profile(
    data: ProfileUpdate,
    claims: SessionClaims = Depends(get_current_visitor),
    db: AsyncSession = Depends(get_db),
):
    return await visitor_service.update_profile(db, claims.visitorId, data.name)
