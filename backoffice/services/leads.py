"""
Lead Service

Leads live in a stage. Every operation first checks that the stage (or the
destination stage, for a move) belongs to the calling organization.
"""
from typing import Any, Dict, List, Optional

from backoffice.core.exceptions import EntityNotFoundError
from backoffice.models import Lead, Membership, Stage
from backoffice.services.audit import AuditRecorder
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)


class LeadService:
    def __init__(self, store: Store):
        self.store = store
        self.audit = AuditRecorder(store)

    def _get_stage(self, org_id: str, stage_id: str) -> Stage:
        stage = self.store.get_stage(stage_id, org_id)
        if not stage:
            raise EntityNotFoundError("Stage")
        return stage

    def _get_lead(self, org_id: str, lead_id: str) -> Lead:
        lead = self.store.get_lead(lead_id, org_id)
        if not lead:
            raise EntityNotFoundError("Lead")
        return lead

    def list(self, org_id: str, stage_id: Optional[str] = None) -> List[Lead]:
        if stage_id:
            self._get_stage(org_id, stage_id)
            return self.store.list_leads(stage_id, org_id)
        return self.store.list_all_leads(org_id)

    def detail(self, org_id: str, lead_id: str) -> Dict[str, Any]:
        lead = self._get_lead(org_id, lead_id)
        return {
            "lead": lead,
            "comments": self.store.list_comments(lead.id, org_id),
        }

    def create(self, actor: Membership, stage_id: str, fields: Dict[str, Any]) -> Lead:
        self._get_stage(actor.org_id, stage_id)
        lead = self.store.create_lead(actor.org_id, stage_id, **fields)
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="create",
            entity="lead",
            entity_id=lead.id,
            metadata={"name": lead.name, "stageId": stage_id},
        )
        logger.info(f"Lead created: {lead.id} in {actor.org_id} by {actor.user_id}")
        return lead

    def update(self, actor: Membership, lead_id: str, updates: Dict[str, Any]) -> Lead:
        if "stage_id" in updates:
            self._get_stage(actor.org_id, updates["stage_id"])
        lead = self.store.update_lead(lead_id, actor.org_id, updates)
        if not lead:
            raise EntityNotFoundError("Lead")
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="update",
            entity="lead",
            entity_id=lead_id,
            metadata={"fields": sorted(updates)},
        )
        return lead

    def move(self, actor: Membership, lead_id: str, stage_id: str) -> Lead:
        """
        Re-parent a lead. A destination stage from another organization is
        reported as not found.
        """
        lead = self._get_lead(actor.org_id, lead_id)
        self._get_stage(actor.org_id, stage_id)
        from_stage_id = lead.stage_id

        lead = self.store.move_lead(lead_id, stage_id, actor.org_id)
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="move",
            entity="lead",
            entity_id=lead_id,
            metadata={"fromStageId": from_stage_id, "toStageId": stage_id},
        )
        logger.info(f"Lead moved: {lead_id} {from_stage_id} -> {stage_id}")
        return lead

    def delete(self, actor: Membership, lead_id: str) -> None:
        if not self.store.delete_lead(lead_id, actor.org_id):
            raise EntityNotFoundError("Lead")
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="delete",
            entity="lead",
            entity_id=lead_id,
        )
