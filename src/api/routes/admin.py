"""Admin routes for app keys, quotas and dashboard statistics."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from core.dependencies import AppKeyManagerDep, QuotaManagerDep, UserManagerDep
from core.exceptions import NotFoundError
from api.routes.auth import require_admin
from schemas.quota import (
    AppKeyInfo,
    DashboardStats,
    ResetQuotaResponse,
    SetAppKeyRequest,
    UpdateAppKeyStatusRequest,
    UserQuotaInfo,
)
from schemas.user import User

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)


@router.get("/app-keys", response_model=List[AppKeyInfo], summary="List app keys")
def list_app_keys(app_key_manager: AppKeyManagerDep = None) -> List[AppKeyInfo]:
    return [AppKeyInfo.model_validate(m) for m in app_key_manager.list_keys()]


@router.post("/app-keys", response_model=AppKeyInfo, summary="Set an app key")
def set_app_key(
    req: SetAppKeyRequest,
    app_key_manager: AppKeyManagerDep = None,
) -> AppKeyInfo:
    """Create or rotate the app key for a free-tier provider."""
    return AppKeyInfo.model_validate(app_key_manager.upsert(req.provider, req.key))


@router.patch(
    "/app-keys/{provider}", response_model=AppKeyInfo, summary="Enable or disable an app key"
)
def update_app_key_status(
    provider: str,
    req: UpdateAppKeyStatusRequest,
    app_key_manager: AppKeyManagerDep = None,
) -> AppKeyInfo:
    return AppKeyInfo.model_validate(app_key_manager.set_active(provider, req.is_active))


@router.get("/user-quotas", response_model=List[UserQuotaInfo], summary="List quotas")
def list_user_quotas(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    quota_manager: QuotaManagerDep = None,
) -> List[UserQuotaInfo]:
    return quota_manager.list_quotas(user_id)


@router.post(
    "/reset-quota/{user_id}/{provider}",
    response_model=ResetQuotaResponse,
    summary="Reset a user's free quota",
)
def reset_quota(
    user_id: str,
    provider: str,
    quota_manager: QuotaManagerDep = None,
    user_manager: UserManagerDep = None,
) -> ResetQuotaResponse:
    """Set the user's used free calls for the provider back to zero.

    Raises:
        NotFoundError: Unknown user, or a provider without a free tier.
    """
    if user_manager.get_user_by_id(user_id) is None:
        raise NotFoundError("User not found")
    quota = quota_manager.reset_usage(user_id, provider)
    return ResetQuotaResponse(message="Quota reset successfully", quota=quota)


@router.get("/dashboard-stats", response_model=DashboardStats, summary="Dashboard stats")
def dashboard_stats(user_manager: UserManagerDep = None) -> DashboardStats:
    return user_manager.get_dashboard_stats()
