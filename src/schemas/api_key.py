"""API key schema definitions."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateAPIKeyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str = Field(min_length=1)
    key: str = Field(min_length=1)
    name: str = Field(min_length=1)
    is_default: bool = Field(default=False, alias="isDefault")


class UpdateAPIKeyRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    provider: Optional[str] = None
    key: Optional[str] = Field(default=None, min_length=1)
    name: Optional[str] = Field(default=None, min_length=1)
    is_default: Optional[bool] = Field(default=None, alias="isDefault")


class APIKeyInfo(BaseModel):
    """Stored key as shown to its owner; the secret is only previewed."""

    id: str
    user_id: str
    provider: str
    name: str
    key_preview: str
    is_default: bool
    is_active: bool
    usage_count: int
    last_used: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserWithKeys(BaseModel):
    user_id: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None
    api_keys: List[APIKeyInfo]
