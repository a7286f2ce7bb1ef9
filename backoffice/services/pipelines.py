"""
Pipeline Service

Pipelines and their stages. Creating a pipeline is bounded by the
organization's plan; everything below a pipeline checks that the parent
belongs to the calling organization first.
"""
from typing import Any, Dict, List, Optional

from backoffice.core.exceptions import EntityNotFoundError, PlanLimitExceeded
from backoffice.models import Membership, Pipeline, Stage, plan_limit
from backoffice.services.audit import AuditRecorder
from backoffice.services.organizations import effective_plan
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)


class PipelineService:
    def __init__(self, store: Store):
        self.store = store
        self.audit = AuditRecorder(store)

    def _get_pipeline(self, org_id: str, pipeline_id: str) -> Pipeline:
        pipeline = self.store.get_pipeline(pipeline_id, org_id)
        if not pipeline:
            raise EntityNotFoundError("Pipeline")
        return pipeline

    def list(self, org_id: str) -> List[Pipeline]:
        return self.store.list_pipelines(org_id)

    def detail(self, org_id: str, pipeline_id: str) -> Dict[str, Any]:
        pipeline = self._get_pipeline(org_id, pipeline_id)
        return {
            "pipeline": pipeline,
            "stages": self.store.list_stages(pipeline.id, org_id),
            "leads": self.store.list_leads_by_pipeline(pipeline.id, org_id),
        }

    def create(self, actor: Membership, name: str) -> Pipeline:
        """
        Create a pipeline unless the plan's pipeline limit is reached.

        The organization row is locked before counting so two concurrent
        creates can't both slip under the limit.
        """
        self.store.lock_organization(actor.org_id)
        plan = effective_plan(self.store, actor.org_id)
        limit = plan_limit(plan, "pipelines")
        if self.store.count_pipelines(actor.org_id) >= limit:
            self.store.db.rollback()
            logger.info(
                f"Pipeline limit reached: {actor.org_id} on {plan} ({limit})",
                extra={"organization_id": actor.org_id},
            )
            raise PlanLimitExceeded("pipelines", plan)

        pipeline = self.store.create_pipeline(actor.org_id, name)
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="create",
            entity="pipeline",
            entity_id=pipeline.id,
            metadata={"name": name},
        )
        logger.info(f"Pipeline created: {pipeline.id} in {actor.org_id} by {actor.user_id}")
        return pipeline

    def update(self, actor: Membership, pipeline_id: str, updates: Dict[str, Any]) -> Pipeline:
        pipeline = self.store.update_pipeline(pipeline_id, actor.org_id, updates)
        if not pipeline:
            raise EntityNotFoundError("Pipeline")
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="update",
            entity="pipeline",
            entity_id=pipeline_id,
            metadata=updates,
        )
        return pipeline

    def delete(self, actor: Membership, pipeline_id: str) -> None:
        if not self.store.delete_pipeline(pipeline_id, actor.org_id):
            raise EntityNotFoundError("Pipeline")
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="delete",
            entity="pipeline",
            entity_id=pipeline_id,
        )
        logger.info(f"Pipeline deleted: {pipeline_id} in {actor.org_id} by {actor.user_id}")

    # Stages

    def list_stages(self, org_id: str, pipeline_id: str) -> List[Stage]:
        self._get_pipeline(org_id, pipeline_id)
        return self.store.list_stages(pipeline_id, org_id)

    def create_stage(self, actor: Membership, pipeline_id: str, name: str, order: Optional[int] = None) -> Stage:
        """Add a stage. Without an explicit order it goes after the last column."""
        self._get_pipeline(actor.org_id, pipeline_id)
        if order is None:
            stages = self.store.list_stages(pipeline_id, actor.org_id)
            order = max((stage.order for stage in stages), default=-1) + 1

        stage = self.store.create_stage(actor.org_id, pipeline_id, name, order)
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="create",
            entity="stage",
            entity_id=stage.id,
            metadata={"name": name, "pipelineId": pipeline_id},
        )
        return stage

    def update_stage(self, actor: Membership, stage_id: str, updates: Dict[str, Any]) -> Stage:
        stage = self.store.update_stage(stage_id, actor.org_id, updates)
        if not stage:
            raise EntityNotFoundError("Stage")
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="update",
            entity="stage",
            entity_id=stage_id,
            metadata=updates,
        )
        return stage

    def delete_stage(self, actor: Membership, stage_id: str) -> None:
        if not self.store.delete_stage(stage_id, actor.org_id):
            raise EntityNotFoundError("Stage")
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="delete",
            entity="stage",
            entity_id=stage_id,
        )

    def reorder_stages(self, actor: Membership, pipeline_id: str, stage_orders: List[Dict[str, Any]]) -> List[Stage]:
        self._get_pipeline(actor.org_id, pipeline_id)
        self.store.reorder_stages(pipeline_id, actor.org_id, stage_orders)
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="reorder",
            entity="stage",
            entity_id=pipeline_id,
            metadata={"stageOrders": stage_orders},
        )
        return self.store.list_stages(pipeline_id, actor.org_id)
