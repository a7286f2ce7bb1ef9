"""
Organization Endpoints
"""
from fastapi import APIRouter, Depends, status

from backoffice.api.deps import get_current_user, get_membership, get_store
from backoffice.models import Membership, User
from backoffice.schemas.organization import (
    OrganizationCreate,
    OrganizationOverview,
    OrganizationResponse,
)
from backoffice.services.organizations import OrganizationService
from backoffice.store import Store

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    data: OrganizationCreate,
    current_user: User = Depends(get_current_user),
    store: Store = Depends(get_store)
):
    """Create an organization. The caller becomes its owner and first admin."""
    return OrganizationService(store).create(current_user, data.name)


@router.get("/{org_id}", response_model=OrganizationOverview)
async def get_organization(
    membership: Membership = Depends(get_membership),
    store: Store = Depends(get_store)
):
    """Organization, subscription, usage stats and the caller's role."""
    return OrganizationService(store).overview(membership)
