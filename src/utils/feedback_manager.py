"""Feedback storage and admin listing."""

import logging
import math
from typing import Optional

from sqlalchemy.orm import Session

from config import FEEDBACK_MAX_PAGE_SIZE, FEEDBACK_PAGE_SIZE, FEEDBACK_SOURCES
from core.exceptions import NotFoundError, ValidationError
from models.feedback import FeedbackModel
from schemas.feedback import FeedbackInfo, FeedbackListResponse, Pagination

logger = logging.getLogger(__name__)


class FeedbackManager:
    """Manages feedback records using SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize FeedbackManager.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db

    def _get(self, feedback_id: int) -> FeedbackModel:
        model = self.db.query(FeedbackModel).filter(FeedbackModel.id == feedback_id).first()
        if not model:
            raise NotFoundError("Feedback not found")
        return model

    def create(
        self,
        name: str,
        email: str,
        message: str,
        source: str = "app",
        user_id: Optional[str] = None,
    ) -> FeedbackModel:
        """Store a feedback submission.

        Raises:
            ValidationError: If a field is blank or the source is unknown.
        """
        name = (name or "").strip()
        message = (message or "").strip()
        if not name or not message:
            raise ValidationError("Name, email, and feedback are required")
        if source not in FEEDBACK_SOURCES:
            raise ValidationError(f"Invalid source: {source}")

        model = FeedbackModel(
            name=name,
            email=email.strip().lower(),
            message=message,
            source=source,
            user_id=user_id,
            is_read=False,
        )
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        logger.info("Stored %s feedback %s", source, model.id)
        return model

    def list_feedback(
        self,
        page: int = 1,
        limit: int = FEEDBACK_PAGE_SIZE,
        is_read: Optional[bool] = None,
        source: Optional[str] = None,
    ) -> FeedbackListResponse:
        """Return one page of feedback, newest first."""
        page = max(1, page)
        limit = min(max(1, limit), FEEDBACK_MAX_PAGE_SIZE)

        query = self.db.query(FeedbackModel)
        if is_read is not None:
            query = query.filter(FeedbackModel.is_read.is_(is_read))
        if source:
            query = query.filter(FeedbackModel.source == source)

        total = query.count()
        models = (
            query.order_by(FeedbackModel.created_at.desc(), FeedbackModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return FeedbackListResponse(
            feedback=[FeedbackInfo.model_validate(m) for m in models],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit),
            ),
        )

    def mark_read(self, feedback_id: int, is_read: bool = True) -> FeedbackModel:
        model = self._get(feedback_id)
        model.is_read = is_read
        self.db.commit()
        self.db.refresh(model)
        return model

    def delete(self, feedback_id: int) -> None:
        model = self._get(feedback_id)
        self.db.delete(model)
        self.db.commit()
        logger.info("Deleted feedback %s", feedback_id)
