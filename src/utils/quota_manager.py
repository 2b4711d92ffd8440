"""Free-tier quota ledger.

One record per (user, provider) tracks how many app-key calls the user has
consumed against a ceiling. Increments are single UPDATE statements so that
concurrent calls for the same pair never lose an update.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import DEFAULT_MAX_FREE_CALLS, FREE_TIER_PROVIDERS
from core.exceptions import NotFoundError
from models.user import UserModel
from models.user_quota import UserQuotaModel
from schemas.quota import QuotaStatus, UserQuotaInfo

logger = logging.getLogger(__name__)


def is_free_tier(provider: str) -> bool:
    return provider in FREE_TIER_PROVIDERS


def _status(used_calls: int, max_free_calls: int) -> QuotaStatus:
    return QuotaStatus(
        used_calls=used_calls,
        max_free_calls=max_free_calls,
        remaining_calls=max(0, max_free_calls - used_calls),
    )


class QuotaManager:
    """Manages per-user free call quotas using SQLAlchemy."""

    def __init__(self, db: Session, max_free_calls: int = DEFAULT_MAX_FREE_CALLS):
        """Initialize QuotaManager.

        Args:
            db: SQLAlchemy Session.
            max_free_calls: Ceiling given to newly created ledger records.
        """
        self.db = db
        self.max_free_calls = max_free_calls

    def is_free_tier(self, provider: str) -> bool:
        return is_free_tier(provider)

    def _get(self, user_id: str, provider: str) -> Optional[UserQuotaModel]:
        return (
            self.db.query(UserQuotaModel)
            .filter(
                UserQuotaModel.user_id == user_id,
                UserQuotaModel.provider == provider,
            )
            .first()
        )

    def _get_or_create(self, user_id: str, provider: str) -> UserQuotaModel:
        quota = self._get(user_id, provider)
        if quota:
            return quota
        quota = UserQuotaModel(
            user_id=user_id,
            provider=provider,
            used_calls=0,
            max_free_calls=self.max_free_calls,
        )
        try:
            self.db.add(quota)
            self.db.commit()
        except IntegrityError:
            # Created concurrently by another request
            self.db.rollback()
            return self._get(user_id, provider)
        self.db.refresh(quota)
        return quota

    def has_remaining_quota(self, user_id: str, provider: str) -> bool:
        """Return True if the user may make another free call.

        Non-free-tier providers never have free calls. The ledger record is
        created with zero usage on the first check.
        """
        if not is_free_tier(provider):
            return False
        quota = self._get_or_create(user_id, provider)
        return quota.used_calls < quota.max_free_calls

    def _apply_increment(self, user_id: str, provider: str) -> int:
        return (
            self.db.query(UserQuotaModel)
            .filter(
                UserQuotaModel.user_id == user_id,
                UserQuotaModel.provider == provider,
            )
            .update(
                {UserQuotaModel.used_calls: UserQuotaModel.used_calls + 1},
                synchronize_session=False,
            )
        )

    def increment_usage(self, user_id: str, provider: str) -> None:
        """Count one app-key call for (user, provider).

        No-op for providers without a free tier.
        """
        if not is_free_tier(provider):
            return
        if self._apply_increment(user_id, provider):
            self.db.commit()
            return
        try:
            self.db.add(
                UserQuotaModel(
                    user_id=user_id,
                    provider=provider,
                    used_calls=1,
                    max_free_calls=self.max_free_calls,
                )
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            self._apply_increment(user_id, provider)
            self.db.commit()

    def reset_usage(self, user_id: str, provider: str) -> UserQuotaInfo:
        """Set used calls back to zero, creating the record if absent.

        Raises:
            NotFoundError: If the provider has no free tier.
        """
        if not is_free_tier(provider):
            raise NotFoundError(f"No free quota exists for provider {provider}")
        quota = self._get_or_create(user_id, provider)
        quota.used_calls = 0
        self.db.commit()
        self.db.refresh(quota)
        logger.info("Reset %s quota for user %s", provider, user_id)
        return self._to_info(quota)

    def get_summary(self, user_id: str) -> Dict[str, QuotaStatus]:
        """Return quota status for every free-tier provider."""
        records = {
            q.provider: q
            for q in self.db.query(UserQuotaModel)
            .filter(UserQuotaModel.user_id == user_id)
            .all()
        }
        summary: Dict[str, QuotaStatus] = {}
        for provider in sorted(FREE_TIER_PROVIDERS):
            quota = records.get(provider)
            if quota:
                summary[provider] = _status(quota.used_calls, quota.max_free_calls)
            else:
                summary[provider] = _status(0, self.max_free_calls)
        return summary

    def get_status(self, user_id: str, provider: str) -> QuotaStatus:
        quota = self._get(user_id, provider)
        if not quota:
            return _status(0, self.max_free_calls)
        return _status(quota.used_calls, quota.max_free_calls)

    def list_quotas(self, user_id: Optional[str] = None) -> List[UserQuotaInfo]:
        """List ledger records with user email and name, newest first."""
        query = self.db.query(UserQuotaModel, UserModel).outerjoin(
            UserModel, UserModel.user_id == UserQuotaModel.user_id
        )
        if user_id:
            query = query.filter(UserQuotaModel.user_id == user_id)
        rows = query.order_by(UserQuotaModel.updated_at.desc()).all()
        return [self._to_info(quota, user) for quota, user in rows]

    def _to_info(
        self, quota: UserQuotaModel, user: Optional[UserModel] = None
    ) -> UserQuotaInfo:
        status = _status(quota.used_calls, quota.max_free_calls)
        return UserQuotaInfo(
            user_id=quota.user_id,
            email=user.email if user else None,
            name=user.name if user else None,
            provider=quota.provider,
            used_calls=status.used_calls,
            max_free_calls=status.max_free_calls,
            remaining_calls=status.remaining_calls,
            updated_at=quota.updated_at,
        )
