"""
Audit Recorder

Appends one AuditLog row per successful mutation. The row is written after
the mutation has committed, in its own transaction. If writing it fails the
mutation stays in place; the failure is logged at ERROR with the full event
so it can be replayed from the logs.
"""
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from backoffice.models import AuditLog
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)


class AuditRecorder:
    def __init__(self, store: Store):
        self.store = store

    def record(
        self,
        org_id: str,
        actor_id: Optional[str],
        action: str,
        entity: str,
        entity_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        try:
            return self.store.create_audit_log(
                org_id=org_id,
                actor_id=actor_id,
                action=action,
                entity=entity,
                entity_id=entity_id,
                metadata=metadata,
            )
        except SQLAlchemyError:
            self.store.db.rollback()
            logger.error(
                f"Audit write failed: {action} {entity}:{entity_id}",
                exc_info=True,
                extra={
                    "organization_id": org_id,
                    "user_id": actor_id,
                    "audit_metadata": metadata or {},
                },
            )
            return None
