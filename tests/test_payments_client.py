from __future__ import annotations

import asyncio
import hashlib
import hmac
import json

import httpx
import pytest

from backoffice.core.exceptions import ExternalServiceError
from backoffice.integrations import http as http_helpers
from backoffice.integrations.payments import (
    StripeClient,
    WebhookSignatureError,
    encode_form,
    verify_webhook_signature,
)

SECRET = "whsec_unit"


def _header(payload: bytes, timestamp: int, secret: str = SECRET) -> str:
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def test_encode_form_flattens_nested_values() -> None:
    pairs = encode_form({
        "customer": "cus_1",
        "line_items": [{"price": "price_1", "quantity": 1}],
        "metadata": {"organizationId": "org_1"},
        "payment_method_types": ["card"],
        "email": None,
        "livemode": False,
    })

    assert pairs == [
        ("customer", "cus_1"),
        ("line_items[0][price]", "price_1"),
        ("line_items[0][quantity]", "1"),
        ("metadata[organizationId]", "org_1"),
        ("payment_method_types[0]", "card"),
        ("livemode", "false"),
    ]


def test_verify_webhook_signature_accepts_valid_header() -> None:
    payload = json.dumps({"type": "ping"}).encode()

    event = verify_webhook_signature(payload, _header(payload, 1_700_000_000), SECRET, now=1_700_000_100)

    assert event == {"type": "ping"}


@pytest.mark.parametrize(
    "header, now",
    [
        (None, 1_700_000_000),
        ("garbage", 1_700_000_000),
        ("t=abc,v1=00", 1_700_000_000),
        ("t=1700000000,v1=deadbeef", 1_700_000_000),
    ],
)
def test_verify_webhook_signature_rejects_bad_headers(header, now) -> None:
    with pytest.raises(WebhookSignatureError):
        verify_webhook_signature(b"{}", header, SECRET, now=now)


def test_verify_webhook_signature_rejects_non_ascii_signature() -> None:
    with pytest.raises(WebhookSignatureError):
        verify_webhook_signature(b"{}", "t=1700000000,v1=\u00e9\u00e9", SECRET, now=1_700_000_000)


def test_verify_webhook_signature_enforces_tolerance() -> None:
    payload = b"{}"

    with pytest.raises(WebhookSignatureError):
        verify_webhook_signature(payload, _header(payload, 1_700_000_000), SECRET, now=1_700_000_301)


def _client_with(transport: httpx.MockTransport, monkeypatch) -> StripeClient:
    real_async_client = httpx.AsyncClient

    def patched(*args, **kwargs):
        kwargs["transport"] = transport
        return real_async_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", patched)
    return StripeClient("sk_test_unit", api_base="https://stripe.test", timeout=1.0)


def test_stripe_client_retries_once_on_server_error(monkeypatch) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503, json={"error": {"message": "try again"}})
        return httpx.Response(200, json={"id": "cus_retry"})

    client = _client_with(httpx.MockTransport(handler), monkeypatch)

    customer_id = asyncio.run(client.create_customer({"organizationId": "org_1"}))

    assert customer_id == "cus_retry"
    assert len(calls) == 2
    assert calls[0].headers["Authorization"] == "Bearer sk_test_unit"
    assert b"metadata%5BorganizationId%5D=org_1" in calls[0].content


def test_stripe_client_fails_fast_on_client_error(monkeypatch) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400, json={"error": {"message": "No such price"}})

    client = _client_with(httpx.MockTransport(handler), monkeypatch)

    with pytest.raises(ExternalServiceError) as excinfo:
        asyncio.run(client.create_checkout_session(
            customer_id="cus_1",
            price_id="price_missing",
            success_url="https://app.test/ok",
            cancel_url="https://app.test/cancel",
            metadata={},
        ))

    assert len(calls) == 1
    assert excinfo.value.status_code == 502
    assert "No such price" in excinfo.value.detail


def test_send_with_retry_gives_up_after_second_transport_error() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    async def run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await http_helpers.send_with_retry(client, "GET", "https://provider.test/ping")

    with pytest.raises(httpx.ConnectError):
        asyncio.run(run())
    assert len(attempts) == http_helpers.MAX_ATTEMPTS


def test_stripe_client_reuses_idempotency_key_when_retrying(monkeypatch) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json={"id": "cus_once"})

    client = _client_with(httpx.MockTransport(handler), monkeypatch)

    customer_id = asyncio.run(client.create_customer({"organizationId": "org_1"}))

    assert customer_id == "cus_once"
    keys = [request.headers.get("Idempotency-Key") for request in calls]
    assert len(keys) == 2
    assert keys[0] and keys[0] == keys[1]


def test_each_stripe_call_gets_its_own_idempotency_key(monkeypatch) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"id": f"cus_{len(calls)}"})

    client = _client_with(httpx.MockTransport(handler), monkeypatch)

    asyncio.run(client.create_customer({"organizationId": "org_1"}))
    asyncio.run(client.create_customer({"organizationId": "org_2"}))

    assert calls[0].headers["Idempotency-Key"] != calls[1].headers["Idempotency-Key"]
