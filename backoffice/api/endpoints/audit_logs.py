"""
Audit Log Endpoints

Read-only: audit entries are never changed or deleted through the API.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from backoffice.api.deps import get_membership, get_store
from backoffice.config import get_settings
from backoffice.models import Membership
from backoffice.schemas.audit_log import AuditLogResponse
from backoffice.store import Store

settings = get_settings()

router = APIRouter(prefix="/organizations/{org_id}/audit-logs", tags=["audit-logs"])


@router.get("", response_model=List[AuditLogResponse])
async def list_audit_logs(
    limit: Optional[int] = Query(None, ge=1),
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    """Newest first. ``limit`` is capped at AUDIT_LOG_MAX_LIMIT."""
    limit = min(limit or settings.AUDIT_LOG_DEFAULT_LIMIT, settings.AUDIT_LOG_MAX_LIMIT)
    return store.list_audit_logs(membership.org_id, limit)
