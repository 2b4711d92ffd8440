"""Per-user provider API key storage.

This module implements the credential store: CRUD over a user's provider keys
plus the default-key selection. At most one key per (user, provider) carries
the default flag; the clear-siblings and set steps always run inside one
transaction, and a partial unique index makes the database reject any write
that would leave two defaults behind.
"""

import logging
import uuid
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import LLM_PROVIDERS
from core.exceptions import (
    AithorError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from models.api_key import APIKeyModel
from models.user import UserModel
from schemas.api_key import APIKeyInfo, UserWithKeys
from utils.key_cipher import decrypt_key, encrypt_key, hash_key, mask_key, utc_now
from utils.llm_manager import get_llm_manager

logger = logging.getLogger(__name__)

_DUPLICATE_KEY_MARKERS = ("key_hash", "uq_api_keys_user_provider_key")


def _is_duplicate_key_violation(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return any(marker in message for marker in _DUPLICATE_KEY_MARKERS)


def normalize_provider(provider: str) -> str:
    """Return the canonical provider id or raise ValidationError."""
    normalized = (provider or "").strip().lower()
    if normalized not in LLM_PROVIDERS:
        raise ValidationError(f"Unsupported provider: {provider}")
    return normalized


class APIKeyManager:
    """Manages user API keys using SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize APIKeyManager.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db

    def _get_owned(self, key_id: str, owner_id: str) -> APIKeyModel:
        model = (
            self.db.query(APIKeyModel)
            .filter(APIKeyModel.id == key_id, APIKeyModel.user_id == owner_id)
            .first()
        )
        if not model:
            raise NotFoundError("API key not found")
        return model

    def _clear_defaults(
        self, user_id: str, provider: str, exclude_id: Optional[str] = None
    ) -> None:
        query = self.db.query(APIKeyModel).filter(
            APIKeyModel.user_id == user_id,
            APIKeyModel.provider == provider,
            APIKeyModel.is_default.is_(True),
        )
        if exclude_id is not None:
            query = query.filter(APIKeyModel.id != exclude_id)
        query.update({APIKeyModel.is_default: False}, synchronize_session=False)

    def _has_duplicate(
        self,
        user_id: str,
        provider: str,
        key_digest: str,
        exclude_id: Optional[str] = None,
    ) -> bool:
        query = self.db.query(APIKeyModel.id).filter(
            APIKeyModel.user_id == user_id,
            APIKeyModel.provider == provider,
            APIKeyModel.key_hash == key_digest,
        )
        if exclude_id is not None:
            query = query.filter(APIKeyModel.id != exclude_id)
        return query.first() is not None

    def _write(self, apply: Callable[[], APIKeyModel]) -> APIKeyModel:
        """Run ``apply`` and commit it as one transaction.

        A uniqueness conflict on the default index means a concurrent writer
        changed the default between our clear and set steps; the whole
        transaction is replayed once against the new state.

        Args:
            apply: Callable performing the reads and writes; it is invoked
                again on retry, so it must not reuse ORM objects across calls.

        Returns:
            The refreshed model returned by ``apply``.

        Raises:
            DuplicateKeyError: If the key value is already stored.
            AithorError: If the default conflict persists after the retry.
        """
        for attempt in range(2):
            try:
                model = apply()
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                if _is_duplicate_key_violation(e):
                    raise DuplicateKeyError(
                        "This API key already exists for this provider"
                    ) from e
                logger.warning("Default key conflict (attempt %d): %s", attempt + 1, e.orig)
                continue
            self.db.refresh(model)
            return model
        raise AithorError("Concurrent default key update, please retry")

    def create(
        self,
        user_id: str,
        provider: str,
        raw_key: str,
        name: str,
        make_default: bool = False,
    ) -> APIKeyModel:
        """Store a new key for the user.

        Args:
            user_id: Owner of the key.
            provider: Provider identifier.
            raw_key: Secret key material.
            name: Display name.
            make_default: Whether the new key becomes the provider default.

        Returns:
            Created APIKeyModel.

        Raises:
            ValidationError: If the provider is unknown or fields are blank.
            DuplicateKeyError: If the same key is already stored for
                (user, provider).
        """
        provider = normalize_provider(provider)
        raw_key = (raw_key or "").strip()
        name = (name or "").strip()
        if not raw_key or not name:
            raise ValidationError("provider, key, and name are required")

        key_digest = hash_key(raw_key)
        if self._has_duplicate(user_id, provider, key_digest):
            raise DuplicateKeyError("This API key already exists for this provider")

        key_id = str(uuid.uuid4())

        def apply() -> APIKeyModel:
            if make_default:
                self._clear_defaults(user_id, provider)
            model = APIKeyModel(
                id=key_id,
                user_id=user_id,
                provider=provider,
                key=encrypt_key(raw_key),
                key_hash=key_digest,
                name=name,
                is_default=make_default,
                is_active=True,
                usage_count=0,
            )
            self.db.add(model)
            return model

        model = self._write(apply)
        logger.info(
            "Created %s key %s for user %s (default=%s)",
            provider,
            key_id,
            user_id,
            make_default,
        )
        return model

    def update(
        self,
        key_id: str,
        owner_id: str,
        provider: Optional[str] = None,
        raw_key: Optional[str] = None,
        name: Optional[str] = None,
        make_default: Optional[bool] = None,
    ) -> APIKeyModel:
        """Update fields of an owned key; omitted fields are unchanged.

        Raises:
            NotFoundError: If the key does not belong to the owner.
            ValidationError: If the provider is unknown or a field is blank.
            DuplicateKeyError: If the resulting (provider, key) is already
                stored for the owner under another record.
        """
        new_provider = normalize_provider(provider) if provider else None
        if raw_key is not None:
            raw_key = raw_key.strip()
            if not raw_key:
                raise ValidationError("key must not be empty")
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("name must not be empty")

        current = self._get_owned(key_id, owner_id)
        target_provider = new_provider or current.provider
        key_digest = hash_key(raw_key) if raw_key is not None else current.key_hash
        if (key_digest != current.key_hash or target_provider != current.provider) and (
            self._has_duplicate(owner_id, target_provider, key_digest, exclude_id=key_id)
        ):
            raise DuplicateKeyError("This API key already exists for this provider")
        previous_key = self.reveal(current) if key_digest != current.key_hash else None

        def apply() -> APIKeyModel:
            model = self._get_owned(key_id, owner_id)
            becomes_default = model.is_default if make_default is None else make_default
            moves_provider = target_provider != model.provider
            if becomes_default and (not model.is_default or moves_provider):
                self._clear_defaults(owner_id, target_provider, exclude_id=key_id)
            model.provider = target_provider
            if raw_key is not None:
                model.key = encrypt_key(raw_key)
                model.key_hash = key_digest
            if name is not None:
                model.name = name
            model.is_default = becomes_default
            return model

        model = self._write(apply)
        if previous_key is not None:
            get_llm_manager().invalidate_key(previous_key)
        logger.info("Updated key %s for user %s", key_id, owner_id)
        return model

    def set_default(self, key_id: str, owner_id: str) -> APIKeyModel:
        """Make the key the only default for its (owner, provider).

        Raises:
            NotFoundError: If the key does not belong to the owner.
        """
        self._get_owned(key_id, owner_id)

        def apply() -> APIKeyModel:
            model = self._get_owned(key_id, owner_id)
            self._clear_defaults(owner_id, model.provider, exclude_id=key_id)
            model.is_default = True
            return model

        model = self._write(apply)
        logger.info("Set key %s as %s default for user %s", key_id, model.provider, owner_id)
        return model

    def delete(self, key_id: str, owner_id: str) -> None:
        """Delete an owned key. Another key is never promoted to default.

        Raises:
            NotFoundError: If the key does not belong to the owner.
        """
        model = self._get_owned(key_id, owner_id)
        raw_key = self.reveal(model)
        self.db.delete(model)
        self.db.commit()
        get_llm_manager().invalidate_key(raw_key)
        logger.info("Deleted key %s for user %s", key_id, owner_id)

    def list_by_owner(self, owner_id: str) -> List[APIKeyModel]:
        return (
            self.db.query(APIKeyModel)
            .filter(APIKeyModel.user_id == owner_id)
            .order_by(APIKeyModel.created_at.desc())
            .all()
        )

    def list_all_grouped(self) -> List[UserWithKeys]:
        """Return every user with their keys (secrets omitted)."""
        users = self.db.query(UserModel).order_by(UserModel.created_at).all()
        keys_by_user: Dict[str, List[APIKeyInfo]] = {}
        for model in (
            self.db.query(APIKeyModel).order_by(APIKeyModel.created_at.desc()).all()
        ):
            keys_by_user.setdefault(model.user_id, []).append(self.to_info(model))
        return [
            UserWithKeys(
                user_id=user.user_id,
                email=user.email,
                name=user.name,
                picture=user.picture,
                api_keys=keys_by_user.get(user.user_id, []),
            )
            for user in users
        ]

    def get_default_active(self, user_id: str, provider: str) -> Optional[APIKeyModel]:
        return (
            self.db.query(APIKeyModel)
            .filter(
                APIKeyModel.user_id == user_id,
                APIKeyModel.provider == provider,
                APIKeyModel.is_default.is_(True),
                APIKeyModel.is_active.is_(True),
            )
            .first()
        )

    def reveal(self, model: APIKeyModel) -> str:
        """Return the raw key material of a stored key."""
        return decrypt_key(model.key)

    def record_usage(self, key_id: str) -> None:
        """Atomically bump the usage counter and last-used timestamp."""
        self.db.query(APIKeyModel).filter(APIKeyModel.id == key_id).update(
            {
                APIKeyModel.usage_count: APIKeyModel.usage_count + 1,
                APIKeyModel.last_used: utc_now(),
            },
            synchronize_session=False,
        )
        self.db.commit()

    def to_info(self, model: APIKeyModel) -> APIKeyInfo:
        return APIKeyInfo(
            id=model.id,
            user_id=model.user_id,
            provider=model.provider,
            name=model.name,
            key_preview=mask_key(self.reveal(model)),
            is_default=model.is_default,
            is_active=model.is_active,
            usage_count=model.usage_count,
            last_used=model.last_used,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
