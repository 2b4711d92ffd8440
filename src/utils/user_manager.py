"""User management utilities.

This module provides user management functionality including user storage,
password hashing, Google account linking, password reset tokens and the
admin user operations.
"""

import hashlib
import logging
import secrets
import uuid
from datetime import timedelta
from typing import List, Optional, Tuple

import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import PASSWORD_RESET_TTL_MINUTES
from core.exceptions import (
    DuplicateUserError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from models.api_key import APIKeyModel
from models.feedback import FeedbackModel
from models.payment import PaymentModel
from models.user import UserModel
from models.user_quota import UserQuotaModel
from schemas.quota import DashboardStats, GrowthStats
from schemas.user import User
from utils.key_cipher import as_utc, decrypt_key, utc_now
from utils.llm_manager import get_llm_manager

logger = logging.getLogger(__name__)

# Use bcrypt directly instead of passlib to avoid initialization issues
# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _growth(current: int, previous: int) -> float:
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


class UserManager:
    """Manages user data persistence and operations using SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        password_bytes = password.encode("utf-8")
        if len(password_bytes) > _BCRYPT_MAX_BYTES:
            logger.warning(
                "Password exceeds %d bytes (%d bytes), truncating",
                _BCRYPT_MAX_BYTES,
                len(password_bytes),
            )
            password_bytes = password_bytes[:_BCRYPT_MAX_BYTES]

        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            plain_password: Plain text password to verify.
            hashed_password: Bcrypt hash string to verify against.

        Returns:
            True if password matches, False otherwise.
        """
        password_bytes = plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
        try:
            return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
        except ValueError as e:
            logger.error("Password verification error: %s", e)
            return False

    def _get_model(self, user_id: str) -> UserModel:
        model = self.db.query(UserModel).filter(UserModel.user_id == user_id).first()
        if not model:
            raise NotFoundError("User not found")
        return model

    def _get_model_by_email(self, email: str) -> Optional[UserModel]:
        return (
            self.db.query(UserModel)
            .filter(UserModel.email == normalize_email(email))
            .first()
        )

    def create_user(
        self,
        email: str,
        password: Optional[str],
        name: Optional[str] = None,
        is_verified: bool = False,
    ) -> User:
        """Create a new user.

        Args:
            email: Email address; stored lower-cased.
            password: Plain text password, or None for OAuth-only accounts.
            name: Optional display name.
            is_verified: Whether the email address is already verified.

        Returns:
            Created User object.

        Raises:
            DuplicateUserError: If the email is already registered.
        """
        email = normalize_email(email)
        if self._get_model_by_email(email):
            raise DuplicateUserError(email)

        model = UserModel(
            user_id=str(uuid.uuid4()),
            email=email,
            password_hash=self.hash_password(password) if password else None,
            name=name,
            is_admin=False,
            is_verified=is_verified,
        )

        # Handle potential race condition: if two requests check simultaneously,
        # both might pass the check but database unique constraint will catch it
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateUserError(email) from e

        logger.info("Created user: %s", model.user_id)
        return User.model_validate(model)

    def authenticate(self, email: str, password: str) -> User:
        """Return the user for a matching email/password pair.

        Raises:
            InvalidCredentialsError: Unknown email, wrong password, or an
                account that only signs in through Google.
        """
        model = self._get_model_by_email(email)
        if not model or not model.password_hash:
            raise InvalidCredentialsError()
        if not self.verify_password(password, model.password_hash):
            raise InvalidCredentialsError()
        return User.model_validate(model)

    def get_user_by_email(self, email: str) -> Optional[User]:
        model = self._get_model_by_email(email)
        if model:
            return User.model_validate(model)
        return None

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get a user by user ID.

        Args:
            user_id: User ID to look up.

        Returns:
            User object if found, None otherwise.
        """
        model = self.db.query(UserModel).filter(UserModel.user_id == user_id).first()
        if model:
            return User.model_validate(model)
        return None

    def list_users(self) -> List[User]:
        models = self.db.query(UserModel).order_by(UserModel.created_at.desc()).all()
        return [User.model_validate(m) for m in models]

    def login_with_google(
        self,
        google_id: str,
        email: str,
        name: Optional[str] = None,
        picture: Optional[str] = None,
    ) -> User:
        """Sign in a verified Google identity.

        Creates the user on first login, or links the Google account to an
        existing user with the same email.

        Args:
            google_id: Google subject identifier.
            email: Verified email from the ID token.
            name: Display name from the ID token.
            picture: Avatar URL from the ID token.

        Returns:
            The signed-in User.
        """
        model = self.db.query(UserModel).filter(UserModel.google_id == google_id).first()
        if not model:
            model = self._get_model_by_email(email)

        if model is None:
            model = UserModel(
                user_id=str(uuid.uuid4()),
                email=normalize_email(email),
                google_id=google_id,
                name=name,
                picture=picture,
                is_admin=False,
                is_verified=True,
            )
            self.db.add(model)
            logger.info("Creating user from Google login: %s", model.user_id)
        elif not model.google_id:
            model.google_id = google_id
            model.name = model.name or name
            model.picture = picture or model.picture
            model.is_verified = True
            logger.info("Linked Google account to user %s", model.user_id)

        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateUserError(email) from e
        self.db.refresh(model)
        return User.model_validate(model)

    def issue_reset_token(self, email: str) -> Tuple[User, str]:
        """Store a fresh password reset token for the user.

        Only the SHA-256 of the token is persisted; the raw token is returned
        for the reset email.

        Raises:
            NotFoundError: If no user has this email.
        """
        model = self._get_model_by_email(email)
        if not model:
            raise NotFoundError("User not found")
        token = secrets.token_hex(32)
        model.reset_token_hash = _hash_reset_token(token)
        model.reset_token_expires_at = utc_now() + timedelta(
            minutes=PASSWORD_RESET_TTL_MINUTES
        )
        self.db.commit()
        self.db.refresh(model)
        logger.info("Issued password reset token for user %s", model.user_id)
        return User.model_validate(model), token

    def clear_reset_token(self, user_id: str) -> None:
        model = self._get_model(user_id)
        model.reset_token_hash = None
        model.reset_token_expires_at = None
        self.db.commit()

    def reset_password(self, token: str, new_password: str) -> User:
        """Consume a reset token and set a new password.

        Raises:
            ValidationError: If the token is unknown or expired.
        """
        model = (
            self.db.query(UserModel)
            .filter(UserModel.reset_token_hash == _hash_reset_token(token))
            .first()
        )
        expires_at = as_utc(model.reset_token_expires_at) if model else None
        if not model or not expires_at or expires_at <= utc_now():
            raise ValidationError("Invalid or expired reset token")

        model.password_hash = self.hash_password(new_password)
        model.reset_token_hash = None
        model.reset_token_expires_at = None
        self.db.commit()
        self.db.refresh(model)
        logger.info("Password reset for user %s", model.user_id)
        return User.model_validate(model)

    def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> None:
        """Change a password after checking the current one.

        Raises:
            NotFoundError: If the user does not exist.
            ValidationError: Wrong current password, or unchanged password.
        """
        model = self._get_model(user_id)
        if not model.password_hash or not self.verify_password(
            current_password, model.password_hash
        ):
            raise ValidationError("Current password is incorrect")
        if self.verify_password(new_password, model.password_hash):
            raise ValidationError("New password must be different from current password")
        model.password_hash = self.hash_password(new_password)
        self.db.commit()
        logger.info("Password changed for user %s", user_id)

    def set_admin(self, user_id: str, is_admin: bool) -> User:
        model = self._get_model(user_id)
        model.is_admin = is_admin
        self.db.commit()
        self.db.refresh(model)
        logger.info("Admin flag for user %s set to %s", user_id, is_admin)
        return User.model_validate(model)

    def delete_user(self, user_id: str) -> User:
        """Delete a user with their API keys and quota records.

        Feedback and payments are kept but unlinked from the user.

        Raises:
            NotFoundError: If the user does not exist.
        """
        model = self._get_model(user_id)
        deleted = User.model_validate(model)

        raw_keys = [
            decrypt_key(key.key)
            for key in self.db.query(APIKeyModel).filter(APIKeyModel.user_id == user_id)
        ]
        self.db.query(APIKeyModel).filter(APIKeyModel.user_id == user_id).delete(
            synchronize_session=False
        )
        self.db.query(UserQuotaModel).filter(UserQuotaModel.user_id == user_id).delete(
            synchronize_session=False
        )
        self.db.query(FeedbackModel).filter(FeedbackModel.user_id == user_id).update(
            {FeedbackModel.user_id: None}, synchronize_session=False
        )
        self.db.query(PaymentModel).filter(PaymentModel.user_id == user_id).update(
            {PaymentModel.user_id: None}, synchronize_session=False
        )
        self.db.delete(model)
        self.db.commit()
        for raw_key in raw_keys:
            get_llm_manager().invalidate_key(raw_key)
        logger.info("Deleted user %s", user_id)
        return deleted

    def get_dashboard_stats(self) -> DashboardStats:
        """Return user/admin/feedback totals and growth over the last month."""
        month_ago = utc_now() - timedelta(days=30)

        total_users = self.db.query(UserModel).count()
        admin_users = self.db.query(UserModel).filter(UserModel.is_admin.is_(True)).count()
        feedback_count = self.db.query(FeedbackModel).count()

        users_before = (
            self.db.query(UserModel).filter(UserModel.created_at < month_ago).count()
        )
        admins_before = (
            self.db.query(UserModel)
            .filter(UserModel.is_admin.is_(True), UserModel.created_at < month_ago)
            .count()
        )
        feedback_before = (
            self.db.query(FeedbackModel)
            .filter(FeedbackModel.created_at < month_ago)
            .count()
        )

        return DashboardStats(
            total_users=total_users,
            admin_users=admin_users,
            feedback_count=feedback_count,
            growth=GrowthStats(
                users=_growth(total_users, users_before),
                feedback=_growth(feedback_count, feedback_before),
                admins=_growth(admin_users, admins_before),
            ),
        )
