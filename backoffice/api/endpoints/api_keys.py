"""
API Key Endpoints

The plaintext key is in the create response only. Listing shows previews.
"""
from typing import List

from fastapi import APIRouter, Depends, status

from backoffice.api.deps import get_membership, get_store, require
from backoffice.models import Membership
from backoffice.schemas.api_key import ApiKeyCreate, ApiKeyCreated, ApiKeyResponse
from backoffice.schemas.base import SuccessResponse
from backoffice.services.api_keys import ApiKeyService
from backoffice.store import Store

router = APIRouter(prefix="/organizations/{org_id}/api-keys", tags=["api-keys"])


@router.get("", response_model=List[ApiKeyResponse])
async def list_api_keys(
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    return ApiKeyService(store).list(membership.org_id)


@router.post("", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    data: ApiKeyCreate,
    membership: Membership = Depends(require("api_key", "create")),
    store: Store = Depends(get_store)
):
    api_key, key_value = ApiKeyService(store).create(membership, data.name)
    return {"key": api_key, "key_value": key_value}


@router.delete("/{key_id}", response_model=SuccessResponse)
async def delete_api_key(
    key_id: str,
    membership: Membership = Depends(require("api_key", "delete")),
    store: Store = Depends(get_store)
):
    ApiKeyService(store).delete(membership, key_id)
    return {"success": True}
