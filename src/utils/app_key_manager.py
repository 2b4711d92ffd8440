"""Platform-owned provider keys used for free-tier calls."""

import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from models.app_key import AppKeyModel
from utils.key_cipher import decrypt_key, encrypt_key, utc_now
from utils.llm_manager import get_llm_manager
from utils.quota_manager import is_free_tier

logger = logging.getLogger(__name__)


class AppKeyManager:
    """Manages the single app key slot per provider."""

    def __init__(self, db: Session):
        """Initialize AppKeyManager.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db

    def _get(self, provider: str) -> AppKeyModel:
        model = self.db.query(AppKeyModel).filter(AppKeyModel.provider == provider).first()
        if not model:
            raise NotFoundError(f"No app key configured for {provider}", provider=provider)
        return model

    def get_active_key(self, provider: str) -> str:
        """Return the raw active app key for the provider.

        Raises:
            NotFoundError: If no active key is configured.
        """
        model = (
            self.db.query(AppKeyModel)
            .filter(AppKeyModel.provider == provider, AppKeyModel.is_active.is_(True))
            .first()
        )
        if not model:
            raise NotFoundError(f"No active app key for {provider}", provider=provider)
        return decrypt_key(model.key)

    def upsert(self, provider: str, raw_key: str) -> AppKeyModel:
        """Replace the key in the provider's slot, creating it if needed.

        Args:
            provider: Free-tier provider identifier.
            raw_key: New secret key material.

        Returns:
            The stored AppKeyModel.

        Raises:
            ValidationError: If the provider has no free tier or the key is blank.
        """
        provider = (provider or "").strip().lower()
        raw_key = (raw_key or "").strip()
        if not is_free_tier(provider):
            raise ValidationError(f"App keys are only supported for free-tier providers, not {provider}")
        if not raw_key:
            raise ValidationError("key is required")

        model = self.db.query(AppKeyModel).filter(AppKeyModel.provider == provider).first()
        previous_key = decrypt_key(model.key) if model else None
        if model:
            model.key = encrypt_key(raw_key)
            model.last_used = utc_now()
        else:
            model = AppKeyModel(
                provider=provider,
                key=encrypt_key(raw_key),
                is_active=True,
                usage_count=0,
            )
            self.db.add(model)
        try:
            self.db.commit()
        except IntegrityError:
            # Slot created concurrently; rotate it instead
            self.db.rollback()
            model = self._get(provider)
            previous_key = decrypt_key(model.key)
            model.key = encrypt_key(raw_key)
            model.last_used = utc_now()
            self.db.commit()
        self.db.refresh(model)
        if previous_key and previous_key != raw_key:
            get_llm_manager().invalidate_key(previous_key)
        logger.info("Stored app key for %s (...%s)", provider, raw_key[-4:])
        return model

    def record_usage(self, provider: str) -> None:
        """Atomically bump the slot's usage counter and last-used timestamp."""
        self.db.query(AppKeyModel).filter(AppKeyModel.provider == provider).update(
            {
                AppKeyModel.usage_count: AppKeyModel.usage_count + 1,
                AppKeyModel.last_used: utc_now(),
            },
            synchronize_session=False,
        )
        self.db.commit()

    def list_keys(self) -> List[AppKeyModel]:
        return self.db.query(AppKeyModel).order_by(AppKeyModel.provider).all()

    def set_active(self, provider: str, is_active: bool) -> AppKeyModel:
        """Enable or disable a slot without removing its key.

        Raises:
            NotFoundError: If the provider has no slot.
        """
        model = self._get(provider)
        model.is_active = is_active
        self.db.commit()
        self.db.refresh(model)
        logger.info("App key for %s is now %s", provider, "active" if is_active else "inactive")
        return model
