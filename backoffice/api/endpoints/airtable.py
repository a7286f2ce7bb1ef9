"""
Airtable Endpoints (admin only)
"""
from typing import Callable

from fastapi import APIRouter, Depends

from backoffice.api.deps import get_airtable_client_factory, get_store, require
from backoffice.integrations.airtable_client import AirtableClient
from backoffice.models import Membership
from backoffice.schemas.airtable import (
    AirtableSyncRequest,
    AirtableSyncResponse,
    AirtableTestRequest,
    AirtableTestResponse,
)
from backoffice.services.airtable_sync import AirtableSyncService
from backoffice.store import Store

router = APIRouter(prefix="/organizations/{org_id}/airtable", tags=["airtable"])


@router.post("/test", response_model=AirtableTestResponse)
async def test_connection(
    data: AirtableTestRequest,
    membership: Membership = Depends(require("airtable", "manage")),
    store: Store = Depends(get_store),
    client_factory: Callable[[str], AirtableClient] = Depends(get_airtable_client_factory)
):
    """List the base's tables; stores the credentials on success."""
    service = AirtableSyncService(store, client_factory)
    tables = await service.test_connection(membership, data.api_key, data.base_id)
    return {"success": True, "tables": tables}


@router.post("/sync", response_model=AirtableSyncResponse)
async def sync(
    data: AirtableSyncRequest,
    membership: Membership = Depends(require("airtable", "manage")),
    store: Store = Depends(get_store),
    client_factory: Callable[[str], AirtableClient] = Depends(get_airtable_client_factory)
):
    return await AirtableSyncService(store, client_factory).sync(membership, data.direction)
