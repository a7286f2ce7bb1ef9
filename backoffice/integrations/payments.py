"""
Payment provider client (Stripe REST API).

Only the calls the billing flow needs: create a customer, open a checkout
session, open a billing-portal session, and verify webhook signatures.
Card data never touches this service.

Stripe's API takes form-encoded bodies with bracketed keys for nested
values, e.g. ``line_items[0][price]=price_123``.
"""
import hashlib
import hmac
import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

import httpx

from backoffice.core.exceptions import ExternalServiceError
from backoffice.integrations.http import send_with_retry

logger = logging.getLogger(__name__)

SERVICE_NAME = "Payment provider"
WEBHOOK_TOLERANCE_SECONDS = 300


class WebhookSignatureError(Exception):
    """Raised when a webhook payload can't be authenticated."""


def encode_form(params: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """Flatten nested dicts/lists into Stripe's bracketed form fields."""
    pairs: List[Tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    pairs.extend(encode_form(item, item_name))
                else:
                    pairs.append((item_name, str(item)))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


class StripeClient:
    """
    Thin async client for the Stripe API.

    Args:
        secret_key: Stripe secret key (sk_test_* or sk_live_*)
        api_base: API root, overridable for tests or proxies
        timeout: Per-request timeout in seconds
    """

    def __init__(self, secret_key: str, api_base: str = "https://api.stripe.com", timeout: float = 10.0):
        if not secret_key:
            raise ValueError("Stripe secret key is required")
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    async def _post(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_base}{path}"
        # One key per logical call, so a retried POST is not applied twice
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Idempotency-Key": str(uuid.uuid4()),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await send_with_retry(
                    client, "POST", url, data=dict(encode_form(params)), headers=headers
                )
        except httpx.HTTPError as e:
            logger.error(f"Stripe request to {path} failed: {e}")
            raise ExternalServiceError(SERVICE_NAME, str(e)) from e

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(
                f"Stripe request to {path} returned {response.status_code}: {message}",
                extra={"event": "stripe.error", "status_code": response.status_code},
            )
            raise ExternalServiceError(SERVICE_NAME, message)

        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return f"HTTP {response.status_code}"

    async def create_customer(self, metadata: Dict[str, str], email: Optional[str] = None, name: Optional[str] = None) -> str:
        """Create a customer and return its id."""
        customer = await self._post("/v1/customers", {
            "email": email,
            "name": name,
            "metadata": metadata,
        })
        logger.info("Stripe customer created", extra={"event": "stripe.customer.created"})
        return customer["id"]

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> str:
        """Open a subscription checkout session and return its hosted URL."""
        session = await self._post("/v1/checkout/sessions", {
            "customer": customer_id,
            "mode": "subscription",
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "subscription_data": {"metadata": metadata},
        })
        return session["url"]

    async def create_portal_session(self, *, customer_id: str, return_url: str) -> str:
        """Open a billing-portal session and return its URL."""
        session = await self._post("/v1/billing_portal/sessions", {
            "customer": customer_id,
            "return_url": return_url,
        })
        return session["url"]


def verify_webhook_signature(
    payload: bytes,
    signature_header: Optional[str],
    secret: str,
    tolerance: int = WEBHOOK_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Check a ``Stripe-Signature`` header and return the decoded event.

    The header looks like ``t=1700000000,v1=<hex hmac>[,v1=...]``; the
    signature is HMAC-SHA256 of ``"{t}.{payload}"`` keyed by the endpoint
    secret.
    """
    if not signature_header:
        raise WebhookSignatureError("Missing signature header")

    timestamp = None
    signatures = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if not timestamp or not signatures:
        raise WebhookSignatureError("Malformed signature header")

    try:
        issued_at = int(timestamp)
    except ValueError:
        raise WebhookSignatureError("Malformed signature timestamp")

    current = time.time() if now is None else now
    if abs(current - issued_at) > tolerance:
        raise WebhookSignatureError("Signature timestamp outside tolerance")

    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    expected = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    expected_bytes = expected.encode("utf-8")
    if not any(
        hmac.compare_digest(expected_bytes, candidate.encode("utf-8", "ignore"))
        for candidate in signatures
    ):
        raise WebhookSignatureError("Signature mismatch")

    try:
        return json.loads(payload)
    except ValueError:
        raise WebhookSignatureError("Payload is not valid JSON")
