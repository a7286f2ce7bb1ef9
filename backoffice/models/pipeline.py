"""
Pipeline Models

Kanban-style hierarchy: Pipeline -> Stage -> Lead -> LeadComment.

Every level repeats org_id so lookups can be scoped by tenant without
joining up the chain. Deleting a parent deletes its children through the
ORM cascade (and ON DELETE CASCADE on real databases).
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, Integer, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from backoffice.database import Base
import uuid


class Pipeline(Base):
    __tablename__ = "pipelines"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    stages = relationship(
        "Stage",
        back_populates="pipeline",
        cascade="all, delete-orphan",
        order_by="Stage.order",
    )

    def __repr__(self):
        return f"<Pipeline {self.name} (org={self.org_id})>"


class Stage(Base):
    __tablename__ = "stages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    pipeline_id = Column(String(36), ForeignKey("pipelines.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)

    # Column position; values need not be contiguous
    order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    pipeline = relationship("Pipeline", back_populates="stages")
    leads = relationship("Lead", back_populates="stage", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_stage_pipeline_order", "pipeline_id", "order"),
    )

    def __repr__(self):
        return f"<Stage {self.name} order={self.order} (pipeline={self.pipeline_id})>"


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    stage_id = Column(String(36), ForeignKey("stages.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    source = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    airtable_record_id = Column(String(64), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    stage = relationship("Stage", back_populates="leads")
    comments = relationship("LeadComment", back_populates="lead", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_lead_stage_updated", "stage_id", "updated_at"),
        Index("idx_lead_org", "org_id"),
    )

    def __repr__(self):
        return f"<Lead {self.name} (stage={self.stage_id})>"


class LeadComment(Base):
    __tablename__ = "lead_comments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False)

    body = Column(Text, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    # NULL when the body mentions nobody
    mentioned_user_ids = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    lead = relationship("Lead", back_populates="comments")
    user = relationship("User")

    __table_args__ = (
        Index("idx_comment_lead_created", "lead_id", "created_at"),
    )

    def __repr__(self):
        return f"<LeadComment {self.id} (lead={self.lead_id})>"
