"""
Organization, Membership and Subscription Models

The organization is the tenant boundary. Every other domain row
carries an org_id and every query filters on it.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from backoffice.database import Base
import uuid
import enum


class MemberRole(str, enum.Enum):
    """
    Roles a user can hold inside one organization.

    ADMIN: everything, including settings, billing and member management
    EDITOR: can invite members and edit pipelines, stages, leads, api keys
    VIEWER: read-only, but may comment on leads
    """
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class PlanTier(str, enum.Enum):
    FREE = "free"
    PRO = "pro"
    TEAM = "team"


# Numeric limits per plan. Only "pipelines" is enforced today, the rest
# is reported to clients alongside usage.
PLAN_LIMITS = {
    PlanTier.FREE.value: {
        "members": 3,
        "operations": 1000,
        "table_mappings": 1,
        "pipelines": 1,
    },
    PlanTier.PRO.value: {
        "members": 15,
        "operations": 100000,
        "table_mappings": 10,
        "pipelines": 5,
    },
    PlanTier.TEAM.value: {
        "members": 50,
        "operations": 1000000,
        "table_mappings": 30,
        "pipelines": 20,
    },
}


def plan_limit(plan: str, name: str) -> int:
    """Look up a limit, treating unknown plans as free."""
    return PLAN_LIMITS.get(plan, PLAN_LIMITS[PlanTier.FREE.value])[name]


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    plan = Column(String(20), default=PlanTier.FREE.value, nullable=False)
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    trial_end = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    members = relationship("Membership", back_populates="organization", cascade="all, delete-orphan")
    subscription = relationship(
        "Subscription",
        back_populates="organization",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Organization {self.name} ({self.id})>"


class Membership(Base):
    __tablename__ = "org_members"

    # One row per (organization, user): a user holds exactly one role per org
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    role = Column(SQLEnum(MemberRole), nullable=False, default=MemberRole.VIEWER)

    invited_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    invited_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="memberships", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_member_user", "user_id"),
    )

    def __repr__(self):
        return f"<Membership user={self.user_id} org={self.org_id} role={self.role}>"


class Subscription(Base):
    __tablename__ = "subscriptions"

    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True)
    plan = Column(String(20), nullable=False, default=PlanTier.FREE.value)
    status = Column(String(50), nullable=False, default="active")
    period_end = Column(DateTime, nullable=True)

    # Usage counters, e.g. {"operations": 12, "tables": 1}
    metered = Column(JSON, nullable=False, default=dict)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    organization = relationship("Organization", back_populates="subscription")
