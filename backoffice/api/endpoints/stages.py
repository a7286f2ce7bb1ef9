"""
Stage Endpoints

Stages are listed per pipeline (``?pipelineId=``) in column order.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from backoffice.api.deps import get_membership, get_store, require
from backoffice.models import Membership
from backoffice.schemas.base import SuccessResponse
from backoffice.schemas.pipeline import StageCreate, StageReorder, StageResponse, StageUpdate
from backoffice.services.pipelines import PipelineService
from backoffice.store import Store

router = APIRouter(prefix="/organizations/{org_id}/stages", tags=["stages"])


@router.get("", response_model=List[StageResponse])
async def list_stages(
    pipeline_id: Optional[str] = Query(None, alias="pipelineId"),
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    if pipeline_id:
        return PipelineService(store).list_stages(membership.org_id, pipeline_id)
    return store.list_all_stages(membership.org_id)


@router.post("", response_model=StageResponse, status_code=status.HTTP_201_CREATED)
async def create_stage(
    data: StageCreate,
    membership: Membership = Depends(require("stage", "create")),
    store: Store = Depends(get_store)
):
    return PipelineService(store).create_stage(membership, data.pipeline_id, data.name, data.order)


# Declared before /{stage_id} so "reorder" isn't taken for a stage id
@router.post("/reorder", response_model=List[StageResponse])
async def reorder_stages(
    data: StageReorder,
    membership: Membership = Depends(require("stage", "reorder")),
    store: Store = Depends(get_store)
):
    """Apply new column positions; returns the pipeline's stages in the new order."""
    stage_orders = [{"id": entry.id, "order": entry.order} for entry in data.stage_orders]
    return PipelineService(store).reorder_stages(membership, data.pipeline_id, stage_orders)


@router.patch("/{stage_id}", response_model=StageResponse)
async def update_stage(
    stage_id: str,
    data: StageUpdate,
    membership: Membership = Depends(require("stage", "update")),
    store: Store = Depends(get_store)
):
    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    return PipelineService(store).update_stage(membership, stage_id, updates)


@router.delete("/{stage_id}", response_model=SuccessResponse)
async def delete_stage(
    stage_id: str,
    membership: Membership = Depends(require("stage", "delete")),
    store: Store = Depends(get_store)
):
    PipelineService(store).delete_stage(membership, stage_id)
    return {"success": True}
