"""Chat routes."""

import logging

from fastapi import APIRouter, Depends

from core.dependencies import KeyResolverDep, LLMManagerDep, QuotaManagerDep
from api.routes.auth import get_current_user
from schemas.chat import ChatRequest, ChatResponse
from schemas.user import User
from utils.key_resolver import provider_for_model

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.post("/send", response_model=ChatResponse, summary="Send a chat message")
def send_message(
    req: ChatRequest,
    current_user: User = Depends(get_current_user),
    key_resolver: KeyResolverDep = None,
    quota_manager: QuotaManagerDep = None,
    llm_manager: LLMManagerDep = None,
) -> ChatResponse:
    """Answer a conversation with the model named by ``modelId``.

    The user's default key for the provider is used when present; otherwise
    free-tier providers fall back to the app key while free calls remain.
    Usage is only counted after the provider answered.

    Raises:
        QuotaExceededError: Free calls used up (429).
        UserKeyRequiredError: Provider needs a personal key (400).
        ProviderNotConfiguredError: No app key for a free-tier provider (500).
        UpstreamFailureError: The provider call failed (502).
    """
    provider = provider_for_model(req.model_id)
    resolution = key_resolver.resolve(current_user.user_id, provider)

    reply, model = llm_manager.chat(
        provider=provider,
        model_id=req.model_id,
        api_key=resolution.api_key,
        messages=req.messages,
    )
    key_resolver.record_usage(resolution)

    quota = None
    if resolution.source == "app":
        quota = quota_manager.get_status(current_user.user_id, provider)
    logger.info(
        "Chat for user %s served by %s %s key",
        current_user.user_id,
        provider,
        resolution.source,
    )
    return ChatResponse(
        success=True,
        message=reply,
        provider=provider,
        model=model,
        source=resolution.source,
        quota=quota,
    )
