"""Quota ledger, app key and admin dashboard schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class QuotaStatus(BaseModel):
    used_calls: int
    max_free_calls: int
    remaining_calls: int


class UserQuotaInfo(BaseModel):
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    provider: str
    used_calls: int
    max_free_calls: int
    remaining_calls: int
    updated_at: Optional[datetime] = None


class ResetQuotaResponse(BaseModel):
    message: str
    quota: UserQuotaInfo


class AppKeyInfo(BaseModel):
    """App key slot without its secret."""

    model_config = ConfigDict(from_attributes=True)

    provider: str
    is_active: bool
    usage_count: int
    last_used: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SetAppKeyRequest(BaseModel):
    provider: str = Field(min_length=1)
    key: str = Field(min_length=1)


class UpdateAppKeyStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_active: bool = Field(alias="isActive")


class GrowthStats(BaseModel):
    users: float
    feedback: float
    admins: float


class DashboardStats(BaseModel):
    total_users: int
    admin_users: int
    feedback_count: int
    growth: GrowthStats
