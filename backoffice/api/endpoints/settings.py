"""
Settings Endpoints

Organization settings as a key -> JSON value map. Secret values come back
masked.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from backoffice.api.deps import get_membership, get_store, require
from backoffice.models import Membership
from backoffice.schemas.setting import SettingResponse, SettingUpdate
from backoffice.services.org_settings import SettingsService, mask_value
from backoffice.store import Store

router = APIRouter(prefix="/organizations/{org_id}/settings", tags=["settings"])


def _setting_view(setting) -> Dict[str, Any]:
    return {
        "key": setting.key,
        "value": mask_value(setting.key, setting.value),
        "updated_by": setting.updated_by,
        "updated_at": setting.updated_at,
    }


@router.get("", response_model=Dict[str, Any])
async def list_settings(
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    return SettingsService(store).as_map(membership.org_id)


@router.get("/{key}", response_model=SettingResponse)
async def get_setting(
    key: str,
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    return _setting_view(SettingsService(store).get(membership.org_id, key))


@router.put("/{key}", response_model=SettingResponse)
async def update_setting(
    key: str,
    data: SettingUpdate,
    membership: Membership = Depends(require("setting", "update")),
    store: Store = Depends(get_store)
):
    """Create or replace a setting (admin only)."""
    setting = SettingsService(store).set(membership, key, data.value)
    return _setting_view(setting)
