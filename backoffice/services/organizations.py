"""
Organization Service

Creating organizations and the overview shown on the dashboard.
"""
from typing import Any, Dict

from backoffice.core.exceptions import EntityNotFoundError
from backoffice.models import Membership, Organization, PLAN_LIMITS, PlanTier, User
from backoffice.services.audit import AuditRecorder
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)


def effective_plan(store: Store, org_id: str) -> str:
    """The subscription's plan, falling back to the organization row, then free."""
    subscription = store.get_subscription(org_id)
    if subscription and subscription.plan:
        return subscription.plan
    org = store.get_organization(org_id)
    if org and org.plan:
        return org.plan
    return PlanTier.FREE.value


class OrganizationService:
    def __init__(self, store: Store):
        self.store = store
        self.audit = AuditRecorder(store)

    def create(self, owner: User, name: str) -> Organization:
        """
        Create an organization owned by ``owner``.

        The owner becomes an accepted admin and the organization starts on
        the free plan.
        """
        org = self.store.create_organization(name=name, owner_id=owner.id)
        self.audit.record(
            org_id=org.id,
            actor_id=owner.id,
            action="create",
            entity="organization",
            entity_id=org.id,
            metadata={"name": org.name},
        )
        logger.info(f"Organization created: {org.id} by {owner.id}")
        return org

    def overview(self, membership: Membership) -> Dict[str, Any]:
        org = self.store.get_organization(membership.org_id)
        if not org:
            raise EntityNotFoundError("Organization")
        plan = effective_plan(self.store, org.id)
        return {
            "organization": org,
            "subscription": self.store.get_subscription(org.id),
            "stats": self.store.organization_stats(org.id),
            "limits": PLAN_LIMITS.get(plan, PLAN_LIMITS[PlanTier.FREE.value]),
            "user_role": membership.role,
        }
