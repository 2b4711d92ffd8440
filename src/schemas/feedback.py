"""Feedback schema definitions."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class CreateFeedbackRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    feedback: str = Field(min_length=1)
    source: str = "app"


class FeedbackInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    message: str
    source: str
    user_id: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class FeedbackListResponse(BaseModel):
    feedback: List[FeedbackInfo]
    pagination: Pagination


class UpdateFeedbackReadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_read: bool = Field(alias="isRead")
