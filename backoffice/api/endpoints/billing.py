"""
Billing Endpoints

Every route here answers 404 when STRIPE_SECRET_KEY is not configured.
The organization comes from the request body, not the path.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from backoffice.api.deps import (
    check_permission,
    get_current_user,
    get_store,
    get_stripe_client,
    resolve_membership,
)
from backoffice.config import get_settings
from backoffice.core.exceptions import BillingNotConfiguredError, InvalidInputError
from backoffice.integrations.payments import (
    StripeClient,
    WebhookSignatureError,
    verify_webhook_signature,
)
from backoffice.models import User
from backoffice.schemas.billing import (
    CheckoutSessionRequest,
    PortalSessionRequest,
    SessionUrlResponse,
    WebhookResponse,
)
from backoffice.services.billing import BillingService
from backoffice.store import Store
from backoffice.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(
    prefix="/billing",
    tags=["billing"],
    dependencies=[Depends(get_stripe_client)],
)


@router.post("/create-checkout-session", response_model=SessionUrlResponse)
async def create_checkout_session(
    data: CheckoutSessionRequest,
    current_user: User = Depends(get_current_user),
    store: Store = Depends(get_store),
    client: StripeClient = Depends(get_stripe_client)
):
    membership = resolve_membership(store, data.organization_id, current_user)
    check_permission(membership, "billing", "manage")

    url = await BillingService(store, client).create_checkout_session(
        membership,
        current_user,
        price_id=data.price_id,
        success_url=data.success_url,
        cancel_url=data.cancel_url,
        plan=data.plan.value if data.plan else None,
    )
    return {"url": url}


@router.post("/create-portal-session", response_model=SessionUrlResponse)
async def create_portal_session(
    data: PortalSessionRequest,
    current_user: User = Depends(get_current_user),
    store: Store = Depends(get_store),
    client: StripeClient = Depends(get_stripe_client)
):
    membership = resolve_membership(store, data.organization_id, current_user)
    check_permission(membership, "billing", "manage")

    url = await BillingService(store, client).create_portal_session(membership, data.return_url)
    return {"url": url}


@router.post("/webhook", response_model=WebhookResponse)
async def webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    store: Store = Depends(get_store)
):
    """
    Provider events. Authenticated by signature, not by session; changes
    are audited with no actor.
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise BillingNotConfiguredError()

    payload = await request.body()
    try:
        event = verify_webhook_signature(payload, stripe_signature, settings.STRIPE_WEBHOOK_SECRET)
    except WebhookSignatureError as e:
        log_security_event(
            "invalid_webhook_signature",
            {"reason": str(e)},
            logger
        )
        raise InvalidInputError("Invalid webhook signature")

    BillingService(store).handle_event(event)
    return {"received": True}
