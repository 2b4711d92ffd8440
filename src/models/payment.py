"""Payment order database model."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from .base import Base


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String, unique=True, index=True, nullable=True)
    qr_code_id = Column(String, unique=True, index=True, nullable=True)
    qr_image_url = Column(String, nullable=True)
    user_id = Column(
        String,
        ForeignKey("users.user_id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    amount = Column(Integer, nullable=False)  # smallest currency unit
    currency = Column(String, nullable=False)
    receipt = Column(String, nullable=True)
    status = Column(String, nullable=False, default="created")  # created, paid, failed
    payment_id = Column(String, index=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
