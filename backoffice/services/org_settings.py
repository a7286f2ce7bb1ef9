"""
Organization Settings Service

Opaque JSON values per (organization, key). Any member can read; only
admins write (enforced by the policy table).
"""
from typing import Any, Dict, Optional

from backoffice.core.exceptions import EntityNotFoundError
from backoffice.models import Membership, Setting
from backoffice.services.audit import AuditRecorder
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)

AIRTABLE_BASE_ID = "airtable.baseId"
AIRTABLE_API_KEY = "airtable.apiKey"

# Credentials stored as settings; masked in reads and audit metadata
SECRET_KEYS = {AIRTABLE_API_KEY}


def mask_value(key: str, value: Any) -> Any:
    if key in SECRET_KEYS and isinstance(value, str) and value:
        return f"{value[:4]}{'*' * 12}"
    return value


class SettingsService:
    def __init__(self, store: Store):
        self.store = store
        self.audit = AuditRecorder(store)

    def as_map(self, org_id: str) -> Dict[str, Any]:
        return {
            setting.key: mask_value(setting.key, setting.value)
            for setting in self.store.list_settings(org_id)
        }

    def get(self, org_id: str, key: str) -> Setting:
        setting = self.store.get_setting(org_id, key)
        if not setting:
            raise EntityNotFoundError("Setting")
        return setting

    def get_value(self, org_id: str, key: str) -> Optional[Any]:
        setting = self.store.get_setting(org_id, key)
        return setting.value if setting else None

    def set(self, actor: Membership, key: str, value: Any) -> Setting:
        setting = self.store.set_setting(
            org_id=actor.org_id,
            key=key,
            value=value,
            updated_by=actor.user_id,
        )
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="update",
            entity="setting",
            entity_id=key,
            metadata={"key": key, "value": mask_value(key, value)},
        )
        logger.info(f"Setting updated: {key} in {actor.org_id} by {actor.user_id}")
        return setting
