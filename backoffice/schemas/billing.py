"""
Billing Schemas
"""
from typing import Optional

from backoffice.models import PlanTier
from backoffice.schemas.base import CamelModel


class CheckoutSessionRequest(CamelModel):
    organization_id: str
    price_id: str
    success_url: str
    cancel_url: str
    # Plan the price belongs to; applied when the checkout completes
    plan: Optional[PlanTier] = None


class PortalSessionRequest(CamelModel):
    organization_id: str
    return_url: str


class SessionUrlResponse(CamelModel):
    url: str


class WebhookResponse(CamelModel):
    received: bool = True
