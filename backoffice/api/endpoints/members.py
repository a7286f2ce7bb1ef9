"""
Member Endpoints

Any member can list; admins and editors invite; only admins change roles
or remove members.
"""
from typing import List

from fastapi import APIRouter, Depends, status

from backoffice.api.deps import get_membership, get_store, require
from backoffice.models import Membership
from backoffice.schemas.base import SuccessResponse
from backoffice.schemas.member import MemberInvite, MemberResponse, MemberRoleUpdate
from backoffice.services.members import MemberService
from backoffice.store import Store

router = APIRouter(prefix="/organizations/{org_id}/members", tags=["members"])


@router.get("", response_model=List[MemberResponse])
async def list_members(
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    return MemberService(store).list(membership.org_id)


@router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def invite_member(
    data: MemberInvite,
    membership: Membership = Depends(require("member", "invite")),
    store: Store = Depends(get_store)
):
    """Add an already-registered user to the organization."""
    return MemberService(store).invite(membership, data.email, data.role)


@router.patch("/{user_id}", response_model=MemberResponse)
async def update_member_role(
    user_id: str,
    data: MemberRoleUpdate,
    membership: Membership = Depends(require("member", "update")),
    store: Store = Depends(get_store)
):
    return MemberService(store).update_role(membership, user_id, data.role)


@router.delete("/{user_id}", response_model=SuccessResponse)
async def remove_member(
    user_id: str,
    membership: Membership = Depends(require("member", "remove")),
    store: Store = Depends(get_store)
):
    MemberService(store).remove(membership, user_id)
    return {"success": True}
