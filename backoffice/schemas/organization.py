"""
Organization Schemas
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from backoffice.models import MemberRole
from backoffice.schemas.base import CamelModel


class OrganizationCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)


class OrganizationResponse(CamelModel):
    id: str
    name: str
    owner_id: str
    plan: str
    trial_end: Optional[datetime] = None
    created_at: datetime


class SubscriptionResponse(CamelModel):
    plan: str
    status: str
    period_end: Optional[datetime] = None
    metered: Dict[str, Any] = {}
    updated_at: Optional[datetime] = None


class OrganizationStats(CamelModel):
    members: int
    operations: int
    tables: int
    api_keys: int
    pipelines: int
    leads: int


class PlanLimits(CamelModel):
    members: int
    operations: int
    table_mappings: int
    pipelines: int


class OrganizationOverview(CamelModel):
    """Dashboard view: the organization, its plan limits and usage, and the caller's role."""
    organization: OrganizationResponse
    subscription: Optional[SubscriptionResponse] = None
    stats: OrganizationStats
    limits: PlanLimits
    user_role: MemberRole
