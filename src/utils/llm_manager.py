"""LLM client management.

This module provides a cache layer for ChatOpenAI clients and the single
chat completion call used by the chat route. Every provider is reached
through its OpenAI-compatible endpoint.
"""

import hashlib
import logging
from collections import OrderedDict
from typing import List, Optional, Sequence, Tuple

import httpx
import openai
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from config import (
    LLM_CLIENT_CACHE_SIZE,
    LLM_MAX_RETRIES,
    LLM_MAX_TOKENS,
    LLM_PROVIDERS,
    LLM_TIMEOUT_SECONDS,
    TEMPERATURE,
)
from core.exceptions import UpstreamFailureError, ValidationError
from schemas.chat import ChatMessage

logger = logging.getLogger(__name__)

_llm_manager_instance: Optional["LLMManager"] = None


def get_llm_manager() -> "LLMManager":
    """Return a singleton LLMManager instance."""
    global _llm_manager_instance
    if _llm_manager_instance is None:
        _llm_manager_instance = LLMManager()
    return _llm_manager_instance


def _key_digest(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]


def to_langchain_messages(messages: Sequence[ChatMessage]) -> List[BaseMessage]:
    converted: List[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "assistant":
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


class LLMManager:
    """Manages cached LLM clients keyed by provider, model and key."""

    def __init__(self, max_clients: int = LLM_CLIENT_CACHE_SIZE) -> None:
        self.max_clients = max_clients
        self.active_llms: "OrderedDict[str, ChatOpenAI]" = OrderedDict()
        logger.info("LLMManager initialized")

    def _validate_provider(self, provider: str) -> None:
        if provider not in LLM_PROVIDERS:
            raise ValidationError(f"Unsupported provider: {provider}")

    def resolve_model(self, provider: str, model_id: str) -> str:
        """Map a UI model id to the vendor model name.

        Unknown ids fall back to the provider's default model.
        """
        self._validate_provider(provider)
        settings = LLM_PROVIDERS[provider]
        return settings["models"].get(model_id, settings["default_model"])

    def get_llm(self, provider: str, model: str, api_key: str) -> ChatOpenAI:
        """Get a cached client for (provider, model, key)."""
        self._validate_provider(provider)
        cache_key = f"{provider}:{model}:{_key_digest(api_key)}"
        cached = self.active_llms.get(cache_key)
        if cached:
            self.active_llms.move_to_end(cache_key)
            return cached

        kwargs = {
            "model": model,
            "api_key": api_key,
            "temperature": TEMPERATURE,
            "max_tokens": LLM_MAX_TOKENS,
            "timeout": LLM_TIMEOUT_SECONDS,
            "max_retries": LLM_MAX_RETRIES,
        }
        base_url = LLM_PROVIDERS[provider]["base_url"]
        if base_url:
            kwargs["base_url"] = base_url

        llm = ChatOpenAI(**kwargs)
        self.active_llms[cache_key] = llm
        while len(self.active_llms) > self.max_clients:
            self.active_llms.popitem(last=False)
        return llm

    def invalidate_key(self, api_key: str) -> None:
        """Drop every cached client built with this key."""
        suffix = f":{_key_digest(api_key)}"
        for cache_key in [k for k in self.active_llms if k.endswith(suffix)]:
            del self.active_llms[cache_key]

    def chat(
        self,
        provider: str,
        model_id: str,
        api_key: str,
        messages: Sequence[ChatMessage],
    ) -> Tuple[str, str]:
        """Send the conversation and return the reply.

        Args:
            provider: Provider serving the call.
            model_id: Model id as sent by the client.
            api_key: Resolved raw API key.
            messages: Conversation so far, oldest first.

        Returns:
            Tuple of (reply text, vendor model name).

        Raises:
            UpstreamFailureError: If the provider call fails or times out.
        """
        model = self.resolve_model(provider, model_id)
        llm = self.get_llm(provider, model, api_key)
        try:
            reply = llm.invoke(to_langchain_messages(messages))
        except (openai.OpenAIError, httpx.HTTPError) as e:
            logger.error("%s call with model %s failed: %s", provider, model, e)
            raise UpstreamFailureError(
                f"{LLM_PROVIDERS[provider]['display_name']} request failed", provider=provider
            ) from e

        content = reply.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        return content, model
