"""
Database Models

Everything except User carries org_id for tenant isolation.
"""
from backoffice.models.user import User
from backoffice.models.organization import (
    Organization,
    Membership,
    Subscription,
    MemberRole,
    PlanTier,
    PLAN_LIMITS,
    plan_limit,
)
from backoffice.models.api_key import ApiKey
from backoffice.models.setting import Setting
from backoffice.models.audit_log import AuditLog
from backoffice.models.pipeline import Pipeline, Stage, Lead, LeadComment

__all__ = [
    "User",
    "Organization",
    "Membership",
    "Subscription",
    "MemberRole",
    "PlanTier",
    "PLAN_LIMITS",
    "plan_limit",
    "ApiKey",
    "Setting",
    "AuditLog",
    "Pipeline",
    "Stage",
    "Lead",
    "LeadComment",
]
