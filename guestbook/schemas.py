from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["visitor", "admin"]


class RequestModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class ResponseModel(BaseModel):
    """Snake_case attributes in Python, camelCase keys on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Requests ---

class LoginRequest(RequestModel):
    email: str = Field(min_length=1, max_length=255)
    # Only required the first time an email is seen.
    name: str | None = Field(None, max_length=150)


class ProfileUpdate(RequestModel):
    name: str = Field(min_length=1, max_length=150)


class CommentCreate(RequestModel):
    message: str = Field(min_length=1, max_length=5000)


# --- Visitor ---

class VisitorSummary(ResponseModel):
    id: int
    name: str
    email: str
    comment_count: int
    role: Role


class VisitorProfile(VisitorSummary):
    last_comment_at: datetime | None = None
    created_at: datetime


class SessionResponse(ResponseModel):
    message: str
    token: str
    visitor: VisitorSummary


# --- Comment ---

class PublicComment(ResponseModel):
    name: str
    message: str
    comment_number: int
    created_at: datetime


class OwnComment(PublicComment):
    id: int
    approved: bool


class CommentSubmitResponse(ResponseModel):
    message: str
    comment_number: int
    comment: OwnComment


class AdminComment(OwnComment):
    email: str
    visitor_id: int | None
    visitor: VisitorSummary | None = None


class ApproveResponse(ResponseModel):
    message: str
    comment: AdminComment


# --- Misc ---

class HealthResponse(BaseModel):
    status: str
    database: str
    timestamp: datetime
    cache: dict = {}

