"""Request-time API key resolution.

Decides which secret serves a chat call for (user, provider):

1. the user's active default key, without touching the quota ledger;
2. for free-tier providers, the app key while free calls remain;
3. otherwise the caller must add a personal key.

Usage is only recorded once the upstream call has succeeded.
"""

import logging
from dataclasses import dataclass, field
from typing import Literal, Optional

from core.exceptions import (
    NotFoundError,
    ProviderNotConfiguredError,
    QuotaExceededError,
    UserKeyRequiredError,
    ValidationError,
)
from utils.api_key_manager import APIKeyManager
from utils.app_key_manager import AppKeyManager
from utils.quota_manager import QuotaManager

logger = logging.getLogger(__name__)

# Checked in order; the first matching fragment wins
_MODEL_PROVIDER_HINTS = (
    ("chatgpt", "openai"),
    ("gpt", "openai"),
    ("gemini", "gemini"),
    ("claude", "claude"),
    ("deepseek", "deepseek"),
    ("perplexity", "perplexity"),
    ("sonar", "perplexity"),
)


def provider_for_model(model_id: str) -> str:
    """Map a UI model id such as ``gpt-4o-mini`` to its provider.

    Raises:
        ValidationError: If the model id matches no known provider.
    """
    lowered = (model_id or "").lower()
    for fragment, provider in _MODEL_PROVIDER_HINTS:
        if fragment in lowered:
            return provider
    raise ValidationError(f"Unsupported model: {model_id}")


@dataclass(frozen=True)
class KeyResolution:
    user_id: str
    provider: str
    api_key: str = field(repr=False)
    source: Literal["user", "app"] = "app"
    key_id: Optional[str] = None


class KeyResolver:
    """Applies the key resolution policy on top of the three key stores."""

    def __init__(
        self,
        api_keys: APIKeyManager,
        quotas: QuotaManager,
        app_keys: AppKeyManager,
    ):
        self.api_keys = api_keys
        self.quotas = quotas
        self.app_keys = app_keys

    def resolve(self, user_id: str, provider: str) -> KeyResolution:
        """Pick the key that serves the next call.

        Args:
            user_id: Calling user.
            provider: Provider the call targets.

        Returns:
            KeyResolution with the raw key and its source.

        Raises:
            QuotaExceededError: Free-tier provider with no free calls left.
            ProviderNotConfiguredError: Free calls left but no active app key.
            UserKeyRequiredError: Provider without free tier and no user key.
        """
        user_key = self.api_keys.get_default_active(user_id, provider)
        if user_key:
            return KeyResolution(
                user_id=user_id,
                provider=provider,
                api_key=self.api_keys.reveal(user_key),
                source="user",
                key_id=user_key.id,
            )

        if self.quotas.is_free_tier(provider):
            if not self.quotas.has_remaining_quota(user_id, provider):
                logger.info("User %s exhausted free %s quota", user_id, provider)
                raise QuotaExceededError(provider)
            try:
                app_key = self.app_keys.get_active_key(provider)
            except NotFoundError as e:
                logger.error("No active app key configured for %s", provider)
                raise ProviderNotConfiguredError(provider) from e
            return KeyResolution(
                user_id=user_id, provider=provider, api_key=app_key, source="app"
            )

        raise UserKeyRequiredError(provider)

    def record_usage(self, resolution: KeyResolution) -> None:
        """Count a successful call against the key that served it."""
        if resolution.source == "user":
            self.api_keys.record_usage(resolution.key_id)
        else:
            self.quotas.increment_usage(resolution.user_id, resolution.provider)
            self.app_keys.record_usage(resolution.provider)
