"""Free-tier usage ledger model."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from .base import Base


class UserQuotaModel(Base):
    """Used and allowed free calls for one (user, provider) pair."""

    __tablename__ = "user_quotas"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_user_quotas_user_provider"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        String,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    provider = Column(String, nullable=False)
    used_calls = Column(Integer, nullable=False, default=0)
    max_free_calls = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
