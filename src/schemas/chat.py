"""Chat request and response schemas."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.quota import QuotaStatus


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatMessage] = Field(min_length=1)
    model_id: str = Field(alias="modelId", min_length=1)


class ChatResponse(BaseModel):
    success: bool
    message: str
    provider: str
    model: str
    source: Literal["user", "app"]
    quota: Optional[QuotaStatus] = None
