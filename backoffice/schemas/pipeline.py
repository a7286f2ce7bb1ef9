"""
Pipeline Schemas

Pipelines, stages, leads and lead comments.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from backoffice.schemas.base import CamelModel
from backoffice.schemas.user import UserSummary


class PipelineCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)


class PipelineUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class PipelineResponse(CamelModel):
    id: str
    org_id: str
    name: str
    created_at: datetime


class StageCreate(CamelModel):
    pipeline_id: str
    name: str = Field(..., min_length=1, max_length=255)
    # Appended after the last stage when omitted
    order: Optional[int] = None


class StageUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    order: Optional[int] = None


class StageOrder(CamelModel):
    id: str
    order: int


class StageReorder(CamelModel):
    pipeline_id: str
    stage_orders: List[StageOrder]


class StageResponse(CamelModel):
    id: str
    org_id: str
    pipeline_id: str
    name: str
    order: int
    created_at: datetime


class LeadCreate(CamelModel):
    stage_id: str
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    source: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class LeadUpdate(CamelModel):
    """All fields optional; only the ones sent are changed."""
    stage_id: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    source: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class LeadMove(CamelModel):
    stage_id: str


class LeadResponse(CamelModel):
    id: str
    org_id: str
    stage_id: str
    name: str
    email: Optional[str] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    airtable_record_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PipelineLeadResponse(LeadResponse):
    stage_name: str
    stage_order: int


class PipelineDetail(CamelModel):
    pipeline: PipelineResponse
    stages: List[StageResponse]
    leads: List[PipelineLeadResponse]


class CommentCreate(CamelModel):
    body: str = Field(..., min_length=1, max_length=10000)


class CommentResponse(CamelModel):
    id: str
    lead_id: str
    body: str
    user_id: str
    mentioned_user_ids: Optional[List[str]] = None
    created_at: datetime
    user: Optional[UserSummary] = None


class LeadDetail(CamelModel):
    lead: LeadResponse
    comments: List[CommentResponse]
