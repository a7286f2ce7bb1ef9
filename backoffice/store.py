"""
Entity Store

Repository over a SQLAlchemy session. One Store is built per request by the
get_store dependency and handed to the services, so tests can construct
their own against any session.

TENANT_ISOLATION: every lookup of an org-owned row takes the organization id
and filters on it. A row that exists under another organization is reported
as missing (None), never as a permission problem.

Each mutating method commits its own unit of work. Deletes of a parent remove
its children in the same transaction through the relationship cascades.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from backoffice.core.security import get_password_hash, verify_password
from backoffice.models import (
    ApiKey,
    AuditLog,
    Lead,
    LeadComment,
    Membership,
    MemberRole,
    Organization,
    Pipeline,
    PlanTier,
    Setting,
    Stage,
    Subscription,
    User,
)
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)


def _apply(entity: Any, updates: Dict[str, Any]) -> None:
    """Partial-field merge: only keys present in ``updates`` are written."""
    for field, value in updates.items():
        setattr(entity, field, value)


class Store:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, email: str, password: str, name: str) -> User:
        user = User(
            email=email,
            password_hash=get_password_hash(password),
            name=name,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def verify_password(self, email: str, password: str) -> Optional[User]:
        user = self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            return None
        return user

    def get_user_with_organizations(self, user_id: str) -> Optional[Dict[str, Any]]:
        """User plus every organization they belong to, each with their role."""
        user = self.get_user(user_id)
        if not user:
            return None
        rows = (
            self.db.query(Organization, Membership.role)
            .join(Membership, Membership.org_id == Organization.id)
            .filter(Membership.user_id == user_id)
            .order_by(Organization.created_at.asc())
            .all()
        )
        return {
            "user": user,
            "organizations": [{"organization": org, "role": role} for org, role in rows],
        }

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    def create_organization(self, name: str, owner_id: str, plan: str = PlanTier.FREE.value) -> Organization:
        """
        Create an organization, admit the owner as an accepted admin and open
        the default subscription, all in one transaction.
        """
        now = datetime.utcnow()
        org = Organization(name=name, owner_id=owner_id, plan=plan)
        self.db.add(org)
        self.db.flush()

        self.db.add(Membership(
            org_id=org.id,
            user_id=owner_id,
            role=MemberRole.ADMIN,
            invited_by=owner_id,
            invited_at=now,
            accepted_at=now,
        ))
        self.db.add(Subscription(
            org_id=org.id,
            plan=plan,
            status="active",
            metered={},
        ))
        self.db.commit()
        return org

    def get_organization(self, org_id: str) -> Optional[Organization]:
        return self.db.get(Organization, org_id)

    def lock_organization(self, org_id: str) -> Optional[Organization]:
        """
        Load the organization row with FOR UPDATE so limit checks that follow
        are serialized per organization (no-op on sqlite).
        """
        return (
            self.db.query(Organization)
            .filter(Organization.id == org_id)
            .with_for_update()
            .first()
        )

    def update_organization(self, org_id: str, updates: Dict[str, Any]) -> Optional[Organization]:
        org = self.get_organization(org_id)
        if not org:
            return None
        _apply(org, updates)
        self.db.commit()
        return org

    def get_organization_by_customer(self, customer_id: str) -> Optional[Organization]:
        return (
            self.db.query(Organization)
            .filter(Organization.stripe_customer_id == customer_id)
            .first()
        )

    def organization_stats(self, org_id: str) -> Dict[str, int]:
        def count(model, column) -> int:
            return self.db.query(func.count(column)).filter(model.org_id == org_id).scalar() or 0

        subscription = self.get_subscription(org_id)
        metered = (subscription.metered if subscription else None) or {}
        return {
            "members": count(Membership, Membership.user_id),
            "operations": int(metered.get("operations", 0)),
            "tables": int(metered.get("tables", 0)),
            "api_keys": count(ApiKey, ApiKey.id),
            "pipelines": count(Pipeline, Pipeline.id),
            "leads": count(Lead, Lead.id),
        }

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def add_member(
        self,
        org_id: str,
        user_id: str,
        role: MemberRole,
        invited_by: Optional[str],
        accepted_at: Optional[datetime] = None,
    ) -> Membership:
        member = Membership(
            org_id=org_id,
            user_id=user_id,
            role=role,
            invited_by=invited_by,
            invited_at=datetime.utcnow(),
            accepted_at=accepted_at,
        )
        self.db.add(member)
        self.db.commit()
        return member

    def get_member(self, org_id: str, user_id: str) -> Optional[Membership]:
        return self.db.get(Membership, (org_id, user_id))

    def list_members(self, org_id: str) -> List[Membership]:
        """Members with their user loaded, oldest first."""
        return (
            self.db.query(Membership)
            .join(User, User.id == Membership.user_id)
            .filter(Membership.org_id == org_id)
            .order_by(Membership.created_at.asc())
            .all()
        )

    def update_member_role(self, org_id: str, user_id: str, role: MemberRole) -> Optional[Membership]:
        member = self.get_member(org_id, user_id)
        if not member:
            return None
        member.role = role
        self.db.commit()
        return member

    def remove_member(self, org_id: str, user_id: str) -> bool:
        member = self.get_member(org_id, user_id)
        if not member:
            return False
        self.db.delete(member)
        self.db.commit()
        return True

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    def create_api_key(self, org_id: str, name: str, key_hash: str, key_preview: str, created_by: str) -> ApiKey:
        api_key = ApiKey(
            org_id=org_id,
            name=name,
            key_hash=key_hash,
            key_preview=key_preview,
            created_by=created_by,
        )
        self.db.add(api_key)
        self.db.commit()
        return api_key

    def list_api_keys(self, org_id: str) -> List[ApiKey]:
        return (
            self.db.query(ApiKey)
            .filter(ApiKey.org_id == org_id)
            .order_by(ApiKey.created_at.asc())
            .all()
        )

    def get_api_key(self, key_id: str, org_id: str) -> Optional[ApiKey]:
        return (
            self.db.query(ApiKey)
            .filter(ApiKey.id == key_id, ApiKey.org_id == org_id)
            .first()
        )

    def get_api_key_by_hash(self, key_hash: str) -> Optional[ApiKey]:
        return self.db.query(ApiKey).filter(ApiKey.key_hash == key_hash).first()

    def touch_api_key(self, api_key: ApiKey) -> ApiKey:
        api_key.last_used_at = datetime.utcnow()
        self.db.commit()
        return api_key

    def delete_api_key(self, key_id: str, org_id: str) -> bool:
        api_key = self.get_api_key(key_id, org_id)
        if not api_key:
            return False
        self.db.delete(api_key)
        self.db.commit()
        return True

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_setting(self, org_id: str, key: str, value: Any, updated_by: str) -> Setting:
        """Upsert: writing an existing key replaces its value."""
        setting = self.get_setting(org_id, key)
        if setting is None:
            setting = Setting(org_id=org_id, key=key)
            self.db.add(setting)
        setting.value = value
        setting.updated_by = updated_by
        setting.updated_at = datetime.utcnow()
        self.db.commit()
        return setting

    def get_setting(self, org_id: str, key: str) -> Optional[Setting]:
        return self.db.get(Setting, (org_id, key))

    def list_settings(self, org_id: str) -> List[Setting]:
        return (
            self.db.query(Setting)
            .filter(Setting.org_id == org_id)
            .order_by(Setting.key.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def get_subscription(self, org_id: str) -> Optional[Subscription]:
        return self.db.get(Subscription, org_id)

    def update_subscription(self, org_id: str, updates: Dict[str, Any]) -> Subscription:
        """Merge ``updates`` into the subscription, creating a free one if missing."""
        subscription = self.get_subscription(org_id)
        if subscription is None:
            subscription = Subscription(
                org_id=org_id,
                plan=PlanTier.FREE.value,
                status="active",
                metered={},
            )
            self.db.add(subscription)
        _apply(subscription, updates)
        subscription.updated_at = datetime.utcnow()
        self.db.commit()
        return subscription

    def increment_usage(self, org_id: str, counter: str, amount: int = 1) -> Subscription:
        subscription = self.get_subscription(org_id)
        metered = dict((subscription.metered if subscription else None) or {})
        metered[counter] = int(metered.get(counter, 0)) + amount
        # Reassign so the JSON column is flagged dirty
        return self.update_subscription(org_id, {"metered": metered})

    # ------------------------------------------------------------------
    # Audit logs (append-only)
    # ------------------------------------------------------------------

    def create_audit_log(
        self,
        org_id: str,
        actor_id: Optional[str],
        action: str,
        entity: str,
        entity_id: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        log = AuditLog(
            org_id=org_id,
            actor_id=actor_id,
            action=action,
            entity=entity,
            entity_id=entity_id,
            event_metadata=metadata or {},
        )
        self.db.add(log)
        self.db.commit()
        return log

    def list_audit_logs(self, org_id: str, limit: int = 50) -> List[AuditLog]:
        """Newest first. Ids are monotonic so they order ties in created_at."""
        return (
            self.db.query(AuditLog)
            .filter(AuditLog.org_id == org_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def create_pipeline(self, org_id: str, name: str) -> Pipeline:
        pipeline = Pipeline(org_id=org_id, name=name)
        self.db.add(pipeline)
        self.db.commit()
        return pipeline

    def list_pipelines(self, org_id: str) -> List[Pipeline]:
        return (
            self.db.query(Pipeline)
            .filter(Pipeline.org_id == org_id)
            .order_by(Pipeline.created_at.asc())
            .all()
        )

    def count_pipelines(self, org_id: str) -> int:
        return self.db.query(func.count(Pipeline.id)).filter(Pipeline.org_id == org_id).scalar() or 0

    def get_pipeline(self, pipeline_id: str, org_id: str) -> Optional[Pipeline]:
        return (
            self.db.query(Pipeline)
            .filter(Pipeline.id == pipeline_id, Pipeline.org_id == org_id)
            .first()
        )

    def update_pipeline(self, pipeline_id: str, org_id: str, updates: Dict[str, Any]) -> Optional[Pipeline]:
        pipeline = self.get_pipeline(pipeline_id, org_id)
        if not pipeline:
            return None
        _apply(pipeline, updates)
        self.db.commit()
        return pipeline

    def delete_pipeline(self, pipeline_id: str, org_id: str) -> bool:
        """Deletes the pipeline with its stages, their leads and the leads' comments."""
        pipeline = self.get_pipeline(pipeline_id, org_id)
        if not pipeline:
            return False
        self.db.delete(pipeline)
        self.db.commit()
        return True

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def create_stage(self, org_id: str, pipeline_id: str, name: str, order: int) -> Stage:
        stage = Stage(org_id=org_id, pipeline_id=pipeline_id, name=name, order=order)
        self.db.add(stage)
        self.db.commit()
        return stage

    def list_stages(self, pipeline_id: str, org_id: str) -> List[Stage]:
        return (
            self.db.query(Stage)
            .filter(Stage.pipeline_id == pipeline_id, Stage.org_id == org_id)
            .order_by(Stage.order.asc(), Stage.created_at.asc())
            .all()
        )

    def list_all_stages(self, org_id: str) -> List[Stage]:
        return (
            self.db.query(Stage)
            .filter(Stage.org_id == org_id)
            .order_by(Stage.pipeline_id, Stage.order.asc())
            .all()
        )

    def get_stage(self, stage_id: str, org_id: str) -> Optional[Stage]:
        return (
            self.db.query(Stage)
            .filter(Stage.id == stage_id, Stage.org_id == org_id)
            .first()
        )

    def update_stage(self, stage_id: str, org_id: str, updates: Dict[str, Any]) -> Optional[Stage]:
        stage = self.get_stage(stage_id, org_id)
        if not stage:
            return None
        _apply(stage, updates)
        self.db.commit()
        return stage

    def delete_stage(self, stage_id: str, org_id: str) -> bool:
        """Deletes the stage with its leads and their comments."""
        stage = self.get_stage(stage_id, org_id)
        if not stage:
            return False
        self.db.delete(stage)
        self.db.commit()
        return True

    def reorder_stages(self, pipeline_id: str, org_id: str, stage_orders: Iterable[Dict[str, Any]]) -> List[Stage]:
        """
        Apply new ``order`` values in one transaction.

        Entries naming a stage outside this pipeline/organization are skipped.
        """
        updated = []
        for entry in stage_orders:
            stage = self.get_stage(entry["id"], org_id)
            if not stage or stage.pipeline_id != pipeline_id:
                continue
            stage.order = entry["order"]
            updated.append(stage)
        self.db.commit()
        return updated

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    def create_lead(self, org_id: str, stage_id: str, **fields: Any) -> Lead:
        now = datetime.utcnow()
        lead = Lead(org_id=org_id, stage_id=stage_id, created_at=now, updated_at=now, **fields)
        self.db.add(lead)
        self.db.commit()
        return lead

    def list_leads(self, stage_id: str, org_id: str) -> List[Lead]:
        return (
            self.db.query(Lead)
            .filter(Lead.stage_id == stage_id, Lead.org_id == org_id)
            .order_by(Lead.updated_at.desc())
            .all()
        )

    def list_leads_by_pipeline(self, pipeline_id: str, org_id: str) -> List[Dict[str, Any]]:
        """Leads of every stage in the pipeline, annotated with their stage's name and order."""
        rows = (
            self.db.query(Lead, Stage.name, Stage.order)
            .join(Stage, Stage.id == Lead.stage_id)
            .filter(
                Stage.pipeline_id == pipeline_id,
                Stage.org_id == org_id,
                Lead.org_id == org_id,
            )
            .order_by(Lead.updated_at.desc())
            .all()
        )
        return [
            {"lead": lead, "stage_name": stage_name, "stage_order": stage_order}
            for lead, stage_name, stage_order in rows
        ]

    def list_all_leads(self, org_id: str) -> List[Lead]:
        return (
            self.db.query(Lead)
            .filter(Lead.org_id == org_id)
            .order_by(Lead.updated_at.desc())
            .all()
        )

    def get_lead(self, lead_id: str, org_id: str) -> Optional[Lead]:
        return (
            self.db.query(Lead)
            .filter(Lead.id == lead_id, Lead.org_id == org_id)
            .first()
        )

    def get_lead_by_record_id(self, record_id: str, org_id: str) -> Optional[Lead]:
        return (
            self.db.query(Lead)
            .filter(Lead.airtable_record_id == record_id, Lead.org_id == org_id)
            .first()
        )

    def update_lead(self, lead_id: str, org_id: str, updates: Dict[str, Any]) -> Optional[Lead]:
        """Partial update; updated_at is always refreshed."""
        lead = self.get_lead(lead_id, org_id)
        if not lead:
            return None
        _apply(lead, updates)
        lead.updated_at = datetime.utcnow()
        self.db.commit()
        return lead

    def link_lead_record(self, lead: Lead, record_id: str) -> Lead:
        """Remember the provider record id without touching updated_at."""
        lead.airtable_record_id = record_id
        self.db.commit()
        return lead

    def move_lead(self, lead_id: str, stage_id: str, org_id: str) -> Optional[Lead]:
        return self.update_lead(lead_id, org_id, {"stage_id": stage_id})

    def delete_lead(self, lead_id: str, org_id: str) -> bool:
        """Deletes the lead with its comments."""
        lead = self.get_lead(lead_id, org_id)
        if not lead:
            return False
        self.db.delete(lead)
        self.db.commit()
        return True

    # ------------------------------------------------------------------
    # Lead comments
    # ------------------------------------------------------------------

    def create_comment(
        self,
        org_id: str,
        lead_id: str,
        body: str,
        user_id: str,
        mentioned_user_ids: Optional[List[str]] = None,
    ) -> LeadComment:
        comment = LeadComment(
            org_id=org_id,
            lead_id=lead_id,
            body=body,
            user_id=user_id,
            mentioned_user_ids=mentioned_user_ids or None,
        )
        self.db.add(comment)
        self.db.commit()
        return comment

    def list_comments(self, lead_id: str, org_id: str) -> List[LeadComment]:
        return (
            self.db.query(LeadComment)
            .filter(LeadComment.lead_id == lead_id, LeadComment.org_id == org_id)
            .order_by(LeadComment.created_at.asc())
            .all()
        )

    def get_comment(self, comment_id: str, lead_id: str, org_id: str) -> Optional[LeadComment]:
        return (
            self.db.query(LeadComment)
            .filter(
                LeadComment.id == comment_id,
                LeadComment.lead_id == lead_id,
                LeadComment.org_id == org_id,
            )
            .first()
        )

    def delete_comment(self, comment_id: str, lead_id: str, org_id: str) -> bool:
        comment = self.get_comment(comment_id, lead_id, org_id)
        if not comment:
            return False
        self.db.delete(comment)
        self.db.commit()
        return True
