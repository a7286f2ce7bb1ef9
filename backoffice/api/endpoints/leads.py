"""
Lead Endpoints

Leads, moving leads between stages, and lead comments.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from backoffice.api.deps import get_membership, get_notifier, get_store, require
from backoffice.models import Membership
from backoffice.schemas.base import SuccessResponse
from backoffice.schemas.pipeline import (
    CommentCreate,
    CommentResponse,
    LeadCreate,
    LeadDetail,
    LeadMove,
    LeadResponse,
    LeadUpdate,
)
from backoffice.services.comments import CommentService
from backoffice.services.leads import LeadService
from backoffice.services.notifications import MentionNotifier
from backoffice.store import Store

router = APIRouter(prefix="/organizations/{org_id}/leads", tags=["leads"])


@router.get("", response_model=List[LeadResponse])
async def list_leads(
    stage_id: Optional[str] = Query(None, alias="stageId"),
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    """Most recently updated first. Optionally limited to one stage."""
    return LeadService(store).list(membership.org_id, stage_id)


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    data: LeadCreate,
    membership: Membership = Depends(require("lead", "create")),
    store: Store = Depends(get_store)
):
    fields = data.model_dump(exclude={"stage_id"})
    return LeadService(store).create(membership, data.stage_id, fields)


@router.get("/{lead_id}", response_model=LeadDetail)
async def get_lead(
    lead_id: str,
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    return LeadService(store).detail(membership.org_id, lead_id)


@router.patch("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: str,
    data: LeadUpdate,
    membership: Membership = Depends(require("lead", "update")),
    store: Store = Depends(get_store)
):
    updates = data.model_dump(exclude_unset=True)
    # email, source and notes may be cleared; name and stage may not
    for field in ("name", "stage_id"):
        if field in updates and updates[field] is None:
            del updates[field]
    return LeadService(store).update(membership, lead_id, updates)


@router.post("/{lead_id}/move", response_model=LeadResponse)
async def move_lead(
    lead_id: str,
    data: LeadMove,
    membership: Membership = Depends(require("lead", "move")),
    store: Store = Depends(get_store)
):
    return LeadService(store).move(membership, lead_id, data.stage_id)


@router.delete("/{lead_id}", response_model=SuccessResponse)
async def delete_lead(
    lead_id: str,
    membership: Membership = Depends(require("lead", "delete")),
    store: Store = Depends(get_store)
):
    LeadService(store).delete(membership, lead_id)
    return {"success": True}


@router.post("/{lead_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    lead_id: str,
    data: CommentCreate,
    membership: Membership = Depends(require("comment", "create")),
    store: Store = Depends(get_store),
    notifier: MentionNotifier = Depends(get_notifier)
):
    """Any member may comment. @mentions of other members notify them."""
    return CommentService(store, notifier).create(membership, lead_id, data.body)


@router.delete("/{lead_id}/comments/{comment_id}", response_model=SuccessResponse)
async def delete_comment(
    lead_id: str,
    comment_id: str,
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store),
    notifier: MentionNotifier = Depends(get_notifier)
):
    """Authors may delete their own comments; admins may delete any."""
    CommentService(store, notifier).delete(membership, lead_id, comment_id)
    return {"success": True}
