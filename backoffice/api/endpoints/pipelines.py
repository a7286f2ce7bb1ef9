"""
Pipeline Endpoints
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status

from backoffice.api.deps import get_membership, get_store, require
from backoffice.models import Membership
from backoffice.schemas.base import SuccessResponse
from backoffice.schemas.pipeline import (
    LeadResponse,
    PipelineCreate,
    PipelineDetail,
    PipelineLeadResponse,
    PipelineResponse,
    PipelineUpdate,
)
from backoffice.services.pipelines import PipelineService
from backoffice.store import Store

router = APIRouter(prefix="/organizations/{org_id}/pipelines", tags=["pipelines"])


def _annotated_lead(row: Dict[str, Any]) -> PipelineLeadResponse:
    lead = LeadResponse.model_validate(row["lead"])
    return PipelineLeadResponse(
        **lead.model_dump(),
        stage_name=row["stage_name"],
        stage_order=row["stage_order"],
    )


@router.get("", response_model=List[PipelineResponse])
async def list_pipelines(
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    return PipelineService(store).list(membership.org_id)


@router.post("", response_model=PipelineResponse, status_code=status.HTTP_201_CREATED)
async def create_pipeline(
    data: PipelineCreate,
    membership: Membership = Depends(require("pipeline", "create")),
    store: Store = Depends(get_store)
):
    """Create a pipeline. Rejected with 400 once the plan's pipeline limit is reached."""
    return PipelineService(store).create(membership, data.name)


@router.get("/{pipeline_id}", response_model=PipelineDetail)
async def get_pipeline(
    pipeline_id: str,
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    """Pipeline with its stages and every lead, each tagged with its stage."""
    detail = PipelineService(store).detail(membership.org_id, pipeline_id)
    detail["leads"] = [_annotated_lead(row) for row in detail["leads"]]
    return detail


@router.patch("/{pipeline_id}", response_model=PipelineResponse)
async def update_pipeline(
    pipeline_id: str,
    data: PipelineUpdate,
    membership: Membership = Depends(require("pipeline", "update")),
    store: Store = Depends(get_store)
):
    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    return PipelineService(store).update(membership, pipeline_id, updates)


@router.delete("/{pipeline_id}", response_model=SuccessResponse)
async def delete_pipeline(
    pipeline_id: str,
    membership: Membership = Depends(require("pipeline", "delete")),
    store: Store = Depends(get_store)
):
    """Delete the pipeline and, with it, its stages, leads and comments."""
    PipelineService(store).delete(membership, pipeline_id)
    return {"success": True}
