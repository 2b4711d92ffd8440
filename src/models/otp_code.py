"""One-time password model.

OTPs live in the shared database so every server instance sees the same
codes, attempt counters and request windows.
"""

from sqlalchemy import Column, DateTime, Integer, String

from .base import Base


class OTPCodeModel(Base):
    __tablename__ = "otp_codes"

    email = Column(String, primary_key=True)  # lower-cased
    code_hash = Column(String, nullable=True)  # None once invalidated
    expires_at = Column(DateTime(timezone=True), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    request_count = Column(Integer, nullable=False, default=0)
    window_started_at = Column(DateTime(timezone=True), nullable=False)
