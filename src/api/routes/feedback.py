"""Feedback routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from config import FEEDBACK_PAGE_SIZE
from core.dependencies import FeedbackManagerDep
from api.routes.auth import get_optional_user, require_admin
from schemas.feedback import (
    CreateFeedbackRequest,
    FeedbackInfo,
    FeedbackListResponse,
    UpdateFeedbackReadRequest,
)
from schemas.user import MessageResponse, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/feedback", tags=["Feedback"])


@router.post(
    "",
    response_model=FeedbackInfo,
    status_code=status.HTTP_201_CREATED,
    summary="Submit feedback",
)
def submit_feedback(
    req: CreateFeedbackRequest,
    current_user: Optional[User] = Depends(get_optional_user),
    feedback_manager: FeedbackManagerDep = None,
) -> FeedbackInfo:
    """Store feedback from the landing page or the app.

    Signed-in callers are linked to their feedback; anonymous submissions and
    invalid tokens are accepted without a link.
    """
    model = feedback_manager.create(
        name=req.name,
        email=req.email,
        message=req.feedback,
        source=req.source,
        user_id=current_user.user_id if current_user else None,
    )
    return FeedbackInfo.model_validate(model)


@router.get("/admin", response_model=FeedbackListResponse, summary="List feedback")
def list_feedback(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=FEEDBACK_PAGE_SIZE, ge=1),
    is_read: Optional[bool] = Query(default=None, alias="isRead"),
    source: Optional[str] = None,
    admin: User = Depends(require_admin),
    feedback_manager: FeedbackManagerDep = None,
) -> FeedbackListResponse:
    return feedback_manager.list_feedback(
        page=page, limit=limit, is_read=is_read, source=source
    )


@router.patch("/admin/{feedback_id}/read", response_model=FeedbackInfo, summary="Mark read")
def mark_feedback_read(
    feedback_id: int,
    req: UpdateFeedbackReadRequest,
    admin: User = Depends(require_admin),
    feedback_manager: FeedbackManagerDep = None,
) -> FeedbackInfo:
    return FeedbackInfo.model_validate(feedback_manager.mark_read(feedback_id, req.is_read))


@router.delete("/admin/{feedback_id}", response_model=MessageResponse, summary="Delete feedback")
def delete_feedback(
    feedback_id: int,
    admin: User = Depends(require_admin),
    feedback_manager: FeedbackManagerDep = None,
) -> MessageResponse:
    feedback_manager.delete(feedback_id)
    return MessageResponse(message="Feedback deleted successfully")
