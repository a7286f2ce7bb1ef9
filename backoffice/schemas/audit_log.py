"""
Audit Log Schemas
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from backoffice.schemas.base import CamelModel


class AuditLogResponse(CamelModel):
    id: int
    org_id: str
    actor_id: Optional[str] = None
    action: str
    entity: str
    entity_id: Optional[str] = None
    # Column is "metadata", which the ORM reserves, so the attribute is renamed
    event_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias="event_metadata",
        serialization_alias="metadata",
    )
    created_at: datetime
