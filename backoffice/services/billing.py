"""
Billing Service

Checkout and portal sessions through the payment provider, and the webhook
that moves an organization between plans. Card data never reaches us: the
provider hosts both pages and we only relay their URLs.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backoffice.core.exceptions import EntityNotFoundError, InvalidInputError
from backoffice.integrations.payments import StripeClient
from backoffice.models import Membership, Organization, PlanTier, User
from backoffice.services.audit import AuditRecorder
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)

PLAN_VALUES = {tier.value for tier in PlanTier}


def _plan_from_metadata(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    plan = (metadata or {}).get("plan")
    return plan if plan in PLAN_VALUES else None


def _period_end(value: Any) -> Optional[datetime]:
    """Provider epoch seconds as a naive UTC datetime; None when absent or malformed."""
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning(f"Ignoring malformed current_period_end: {value!r}")
        return None


class BillingService:
    def __init__(self, store: Store, client: Optional[StripeClient] = None):
        self.store = store
        self.client = client
        self.audit = AuditRecorder(store)

    def _get_organization(self, org_id: str) -> Organization:
        org = self.store.get_organization(org_id)
        if not org:
            raise EntityNotFoundError("Organization")
        return org

    async def _ensure_customer(self, org: Organization, user: User) -> str:
        """Reuse the organization's billing customer or create one."""
        if org.stripe_customer_id:
            return org.stripe_customer_id

        customer_id = await self.client.create_customer(
            metadata={"organizationId": org.id},
            email=user.email,
            name=org.name,
        )
        self.store.update_organization(org.id, {"stripe_customer_id": customer_id})
        self.audit.record(
            org_id=org.id,
            actor_id=user.id,
            action="create",
            entity="billing_customer",
            entity_id=customer_id,
        )
        logger.info(f"Billing customer created for {org.id}")
        return customer_id

    async def create_checkout_session(
        self,
        actor: Membership,
        user: User,
        price_id: str,
        success_url: str,
        cancel_url: str,
        plan: Optional[str] = None,
    ) -> str:
        org = self._get_organization(actor.org_id)
        customer_id = await self._ensure_customer(org, user)

        metadata = {"organizationId": org.id}
        if plan:
            metadata["plan"] = plan
        url = await self.client.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
        logger.info(f"Checkout session opened for {org.id} by {user.id}")
        return url

    async def create_portal_session(self, actor: Membership, return_url: str) -> str:
        org = self._get_organization(actor.org_id)
        if not org.stripe_customer_id:
            raise InvalidInputError("No billing account found")
        return await self.client.create_portal_session(
            customer_id=org.stripe_customer_id,
            return_url=return_url,
        )

    # Webhook events

    def handle_event(self, event: Dict[str, Any]) -> bool:
        """
        Apply a verified provider event. Returns False for event types we
        don't act on.
        """
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == "checkout.session.completed":
            self._checkout_completed(obj)
        elif event_type in ("customer.subscription.updated", "customer.subscription.deleted"):
            self._subscription_changed(obj, deleted=event_type.endswith("deleted"))
        else:
            logger.debug(f"Ignoring billing event {event_type}")
            return False
        return True

    def _find_organization(self, obj: Dict[str, Any]) -> Optional[Organization]:
        org_id = (obj.get("metadata") or {}).get("organizationId")
        if org_id:
            org = self.store.get_organization(org_id)
            if org:
                return org
        customer_id = obj.get("customer")
        if customer_id:
            return self.store.get_organization_by_customer(customer_id)
        return None

    def _checkout_completed(self, obj: Dict[str, Any]) -> None:
        org = self._find_organization(obj)
        if not org:
            logger.warning(f"Checkout completed for unknown organization (customer={obj.get('customer')})")
            return

        plan = _plan_from_metadata(obj.get("metadata")) or org.plan
        org_updates: Dict[str, Any] = {
            "plan": plan,
            "stripe_subscription_id": obj.get("subscription"),
        }
        if obj.get("customer"):
            org_updates["stripe_customer_id"] = obj["customer"]
        self.store.update_organization(org.id, org_updates)
        self.store.update_subscription(org.id, {"plan": plan, "status": "active"})

        self.audit.record(
            org_id=org.id,
            actor_id=None,
            action="update",
            entity="subscription",
            entity_id=obj.get("subscription"),
            metadata={"plan": plan, "status": "active"},
        )
        logger.info(f"Checkout completed: {org.id} now on {plan}")

    def _subscription_changed(self, obj: Dict[str, Any], deleted: bool) -> None:
        org = self._find_organization(obj)
        if not org:
            logger.warning(f"Subscription event for unknown organization (customer={obj.get('customer')})")
            return

        if deleted:
            plan = PlanTier.FREE.value
            status = "canceled"
            org_updates = {"plan": plan, "stripe_subscription_id": None}
        else:
            plan = _plan_from_metadata(obj.get("metadata")) or org.plan
            status = obj.get("status") or "active"
            org_updates = {"plan": plan, "stripe_subscription_id": obj.get("id")}

        subscription_updates: Dict[str, Any] = {"plan": plan, "status": status}
        period_end = _period_end(obj.get("current_period_end"))
        if period_end:
            subscription_updates["period_end"] = period_end

        self.store.update_organization(org.id, org_updates)
        self.store.update_subscription(org.id, subscription_updates)
        self.audit.record(
            org_id=org.id,
            actor_id=None,
            action="delete" if deleted else "update",
            entity="subscription",
            entity_id=obj.get("id"),
            metadata={"plan": plan, "status": status},
        )
        logger.info(f"Subscription {status}: {org.id} on {plan}")
