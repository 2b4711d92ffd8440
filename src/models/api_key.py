"""Per-user provider API key model."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.sql import func

from .base import Base


class APIKeyModel(Base):
    """A provider key submitted by a user.

    ``key`` holds the (optionally encrypted) secret; ``key_hash`` is the
    SHA-256 of the raw secret and backs the duplicate-key constraint.
    """

    __tablename__ = "api_keys"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "provider",
            "key_hash",
            name="uq_api_keys_user_provider_key",
        ),
        Index("ix_api_keys_user_provider", "user_id", "provider"),
        # At most one default key per (user, provider)
        Index(
            "uq_api_keys_user_provider_default",
            "user_id",
            "provider",
            unique=True,
            sqlite_where=text("is_default"),
            postgresql_where=text("is_default"),
        ),
    )

    id = Column(String, primary_key=True, index=True)
    user_id = Column(
        String,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    provider = Column(String, nullable=False)
    key = Column(String, nullable=False)
    key_hash = Column(String, nullable=False)
    name = Column(String, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    usage_count = Column(Integer, nullable=False, default=0)
    last_used = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
