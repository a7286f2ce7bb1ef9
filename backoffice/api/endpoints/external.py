"""
External API Endpoints

Machine access with an organization API key (``X-API-Key`` header).
Each call marks the key as used and counts one metered operation.
"""
from typing import List

from fastapi import APIRouter, Depends

from backoffice.api.deps import get_api_key, get_store
from backoffice.models import ApiKey
from backoffice.schemas.pipeline import PipelineResponse
from backoffice.store import Store

router = APIRouter(prefix="/external", tags=["external"])


@router.get("/pipelines", response_model=List[PipelineResponse])
async def list_pipelines(
    api_key: ApiKey = Depends(get_api_key),
    store: Store = Depends(get_store)
):
    return store.list_pipelines(api_key.org_id)
