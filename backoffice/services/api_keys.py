"""
API Key Service

Keys are generated server-side. The plaintext is returned by create() and
never stored; afterwards only the masked preview is visible.
"""
from typing import List, Optional, Tuple

from backoffice.core.exceptions import EntityNotFoundError
from backoffice.core.security import generate_api_key, hash_api_key
from backoffice.models import ApiKey, Membership
from backoffice.services.audit import AuditRecorder
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)


class ApiKeyService:
    def __init__(self, store: Store):
        self.store = store
        self.audit = AuditRecorder(store)

    def list(self, org_id: str) -> List[ApiKey]:
        return self.store.list_api_keys(org_id)

    def create(self, actor: Membership, name: str) -> Tuple[ApiKey, str]:
        """Returns the stored key and its plaintext value."""
        key_value, key_hash, key_preview = generate_api_key()
        api_key = self.store.create_api_key(
            org_id=actor.org_id,
            name=name,
            key_hash=key_hash,
            key_preview=key_preview,
            created_by=actor.user_id,
        )
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="create",
            entity="api_key",
            entity_id=api_key.id,
            metadata={"name": name},
        )
        logger.info(f"API key created: {api_key.id} in {actor.org_id} by {actor.user_id}")
        return api_key, key_value

    def delete(self, actor: Membership, key_id: str) -> None:
        if not self.store.delete_api_key(key_id, actor.org_id):
            raise EntityNotFoundError("API key")
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="delete",
            entity="api_key",
            entity_id=key_id,
        )
        logger.info(f"API key deleted: {key_id} in {actor.org_id} by {actor.user_id}")

    def authenticate(self, key_value: str) -> Optional[ApiKey]:
        """
        Resolve a presented key. Marks it used and meters one operation
        against its organization.
        """
        api_key = self.store.get_api_key_by_hash(hash_api_key(key_value))
        if not api_key:
            return None
        self.store.touch_api_key(api_key)
        self.store.increment_usage(api_key.org_id, "operations")
        return api_key
