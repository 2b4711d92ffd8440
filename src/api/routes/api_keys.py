"""API key routes.

Owners manage their own provider keys here; the ``/admin`` variants let an
admin manage keys on behalf of any user.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from core.dependencies import APIKeyManagerDep, UserManagerDep
from core.exceptions import NotFoundError
from api.routes.auth import get_current_user, require_admin
from schemas.api_key import (
    APIKeyInfo,
    CreateAPIKeyRequest,
    UpdateAPIKeyRequest,
    UserWithKeys,
)
from schemas.user import MessageResponse, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/api-keys", tags=["API Keys"])


@router.get("", response_model=List[APIKeyInfo], summary="List my API keys")
def list_api_keys(
    current_user: User = Depends(get_current_user),
    api_key_manager: APIKeyManagerDep = None,
) -> List[APIKeyInfo]:
    return [
        api_key_manager.to_info(m)
        for m in api_key_manager.list_by_owner(current_user.user_id)
    ]


@router.post("", response_model=APIKeyInfo, summary="Add an API key")
def create_api_key(
    req: CreateAPIKeyRequest,
    current_user: User = Depends(get_current_user),
    api_key_manager: APIKeyManagerDep = None,
) -> APIKeyInfo:
    """Store a new key; a duplicate (provider, key) for the user is rejected."""
    model = api_key_manager.create(
        user_id=current_user.user_id,
        provider=req.provider,
        raw_key=req.key,
        name=req.name,
        make_default=req.is_default,
    )
    return api_key_manager.to_info(model)


@router.get("/admin/all", response_model=List[UserWithKeys], summary="All users' keys")
def list_all_api_keys(
    admin: User = Depends(require_admin),
    api_key_manager: APIKeyManagerDep = None,
) -> List[UserWithKeys]:
    return api_key_manager.list_all_grouped()


@router.post("/admin/{user_id}", response_model=APIKeyInfo, summary="Add a key for a user")
def admin_create_api_key(
    user_id: str,
    req: CreateAPIKeyRequest,
    admin: User = Depends(require_admin),
    api_key_manager: APIKeyManagerDep = None,
    user_manager: UserManagerDep = None,
) -> APIKeyInfo:
    if user_manager.get_user_by_id(user_id) is None:
        raise NotFoundError("User not found")
    model = api_key_manager.create(
        user_id=user_id,
        provider=req.provider,
        raw_key=req.key,
        name=req.name,
        make_default=req.is_default,
    )
    logger.info("Admin %s added a %s key for user %s", admin.user_id, model.provider, user_id)
    return api_key_manager.to_info(model)


@router.put("/admin/{user_id}/{key_id}", response_model=APIKeyInfo, summary="Update a user's key")
def admin_update_api_key(
    user_id: str,
    key_id: str,
    req: UpdateAPIKeyRequest,
    admin: User = Depends(require_admin),
    api_key_manager: APIKeyManagerDep = None,
) -> APIKeyInfo:
    model = api_key_manager.update(
        key_id,
        user_id,
        provider=req.provider,
        raw_key=req.key,
        name=req.name,
        make_default=req.is_default,
    )
    return api_key_manager.to_info(model)


@router.delete(
    "/admin/{user_id}/{key_id}", response_model=MessageResponse, summary="Delete a user's key"
)
def admin_delete_api_key(
    user_id: str,
    key_id: str,
    admin: User = Depends(require_admin),
    api_key_manager: APIKeyManagerDep = None,
) -> MessageResponse:
    api_key_manager.delete(key_id, user_id)
    return MessageResponse(message="API key deleted")


@router.patch(
    "/admin/{user_id}/{key_id}/active",
    response_model=APIKeyInfo,
    summary="Set a user's default key",
)
def admin_set_default_api_key(
    user_id: str,
    key_id: str,
    admin: User = Depends(require_admin),
    api_key_manager: APIKeyManagerDep = None,
) -> APIKeyInfo:
    return api_key_manager.to_info(api_key_manager.set_default(key_id, user_id))


@router.put("/{key_id}", response_model=APIKeyInfo, summary="Update an API key")
def update_api_key(
    key_id: str,
    req: UpdateAPIKeyRequest,
    current_user: User = Depends(get_current_user),
    api_key_manager: APIKeyManagerDep = None,
) -> APIKeyInfo:
    model = api_key_manager.update(
        key_id,
        current_user.user_id,
        provider=req.provider,
        raw_key=req.key,
        name=req.name,
        make_default=req.is_default,
    )
    return api_key_manager.to_info(model)


@router.delete("/{key_id}", response_model=MessageResponse, summary="Delete an API key")
def delete_api_key(
    key_id: str,
    current_user: User = Depends(get_current_user),
    api_key_manager: APIKeyManagerDep = None,
) -> MessageResponse:
    """Delete a key. If it was the default, no other key is promoted."""
    api_key_manager.delete(key_id, current_user.user_id)
    return MessageResponse(message="API key deleted")


@router.patch("/{key_id}/active", response_model=APIKeyInfo, summary="Set default API key")
def set_default_api_key(
    key_id: str,
    current_user: User = Depends(get_current_user),
    api_key_manager: APIKeyManagerDep = None,
) -> APIKeyInfo:
    """Make this key the one used for its provider."""
    return api_key_manager.to_info(
        api_key_manager.set_default(key_id, current_user.user_id)
    )
