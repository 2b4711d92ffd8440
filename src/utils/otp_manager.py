"""One-time password store for email verification.

Codes are kept in the database, one row per email, so every server instance
shares the same codes, attempt counters and request windows. Only a digest of
each code is stored.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import (
    OTP_LENGTH,
    OTP_MAX_ATTEMPTS,
    OTP_MAX_REQUESTS,
    OTP_REQUEST_WINDOW_HOURS,
    OTP_TTL_MINUTES,
)
from core.exceptions import RateLimitedError, ValidationError
from models.otp_code import OTPCodeModel
from utils.key_cipher import as_utc, utc_now
from utils.user_manager import normalize_email

logger = logging.getLogger(__name__)


def _digest(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


class OTPManager:
    """Issues and verifies email OTPs."""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, email: str) -> OTPCodeModel:
        return self.db.query(OTPCodeModel).filter(OTPCodeModel.email == email).first()

    def purge_expired(self) -> int:
        """Delete rows whose code and request window have both lapsed."""
        now = utc_now()
        window_start = now - timedelta(hours=OTP_REQUEST_WINDOW_HOURS)
        removed = (
            self.db.query(OTPCodeModel)
            .filter(
                or_(OTPCodeModel.code_hash.is_(None), OTPCodeModel.expires_at < now),
                OTPCodeModel.window_started_at < window_start,
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if removed:
            logger.debug("Purged %d expired OTP rows", removed)
        return removed

    def _create(self, email: str, now: datetime) -> OTPCodeModel:
        """Insert an empty row opening a new request window."""
        row = OTPCodeModel(
            email=email,
            code_hash=None,
            expires_at=now,
            attempts=0,
            request_count=0,
            window_started_at=now,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except IntegrityError:
            # Inserted concurrently by another request for the same email
            self.db.rollback()
            return self._get(email)
        self.db.refresh(row)
        return row

    def issue(self, email: str) -> str:
        """Create a new code for the email, replacing any previous one.

        Args:
            email: Address the code will be sent to.

        Returns:
            The raw code, for delivery by email.

        Raises:
            RateLimitedError: If the email already requested the maximum
                number of codes inside the current window.
        """
        self.purge_expired()
        email = normalize_email(email)
        now = utc_now()
        code = generate_code()

        row = self._get(email) or self._create(email, now)
        if as_utc(row.window_started_at) + timedelta(hours=OTP_REQUEST_WINDOW_HOURS) <= now:
            row.request_count = 0
            row.window_started_at = now
        elif row.request_count >= OTP_MAX_REQUESTS:
            raise RateLimitedError(
                f"Too many OTP requests. Please try again after {OTP_REQUEST_WINDOW_HOURS} hours."
            )

        row.request_count += 1
        row.code_hash = _digest(code)
        row.attempts = 0
        row.expires_at = now + timedelta(minutes=OTP_TTL_MINUTES)
        self.db.commit()
        logger.info("Issued OTP for %s (request %d)", email, row.request_count)
        return code

    def invalidate(self, email: str) -> None:
        """Drop the current code, keeping the request window."""
        row = self._get(normalize_email(email))
        if row is not None:
            row.code_hash = None
            self.db.commit()

    def verify(self, email: str, code: str) -> None:
        """Check a submitted code; a correct code is consumed.

        Raises:
            ValidationError: If there is no live code, it expired, too many
                wrong attempts were made, or the code does not match.
        """
        email = normalize_email(email)
        row = self._get(email)
        if row is None or row.code_hash is None:
            raise ValidationError("OTP not found or expired")

        if as_utc(row.expires_at) <= utc_now():
            self.invalidate(email)
            raise ValidationError("OTP has expired")

        if row.attempts >= OTP_MAX_ATTEMPTS:
            self.invalidate(email)
            raise ValidationError("Too many failed attempts. Please request a new OTP")

        if hmac.compare_digest(row.code_hash, _digest((code or "").strip())):
            self.db.delete(row)
            self.db.commit()
            logger.info("OTP verified for %s", email)
            return

        # Counted in SQL so concurrent guesses cannot share one attempt
        counted = (
            self.db.query(OTPCodeModel)
            .filter(
                and_(
                    OTPCodeModel.email == email,
                    OTPCodeModel.attempts < OTP_MAX_ATTEMPTS,
                )
            )
            .update(
                {OTPCodeModel.attempts: OTPCodeModel.attempts + 1},
                synchronize_session=False,
            )
        )
        self.db.commit()
        if not counted:
            raise ValidationError("Too many failed attempts. Please request a new OTP")
        self.db.refresh(row)
        remaining = max(0, OTP_MAX_ATTEMPTS - row.attempts)
        raise ValidationError(f"Invalid OTP. {remaining} attempts remaining")
