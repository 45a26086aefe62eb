import hashlib
import hmac
import json
import time
from urllib.parse import parse_qs

import httpx
import pytest

stripe = pytest.importorskip("stripe")

from infrastructure.external.payments import get_payment_gateway  # noqa: E402
from infrastructure.external.payments.exceptions import (  # noqa: E402
    PaymentConfigurationError,
    PaymentProviderError,
    PaymentRecoverableError,
    PaymentSignatureError,
)
from infrastructure.external.payments.stripe_client import StripeTerminalClient  # noqa: E402

from conftest import make_payment_settings  # noqa: E402


def _sign(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    ts = timestamp or int(time.time())
    signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def _pi(**overrides):
    pi = {
        "id": "pi_123",
        "object": "payment_intent",
        "amount": 1000,
        "currency": "usd",
        "status": "requires_payment_method",
        "metadata": {},
        "receipt_email": None,
    }
    pi.update(overrides)
    return pi


@pytest.fixture
def client():
    return StripeTerminalClient(make_payment_settings())


def test_factory_returns_stripe_client():
    gw = get_payment_gateway(make_payment_settings())
    assert isinstance(gw, StripeTerminalClient)
    with pytest.raises(ValueError):
        get_payment_gateway(make_payment_settings(), provider="square")


@pytest.mark.asyncio
async def test_create_intent_sends_card_present_params(monkeypatch, client):
    captured = {}

    def fake_create(**kwargs):
        captured.update(kwargs)
        return _pi(metadata=kwargs["metadata"])

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
    intent = await client.create_intent(amount=1000, currency="usd", metadata={"event": "gala"}, description="Event sale")

    assert intent.id == "pi_123"
    assert captured["api_key"] == "sk_test_123"
    assert captured["payment_method_types"] == ["card_present"]
    assert captured["capture_method"] == "automatic"
    assert captured["metadata"] == {"event": "gala"}
    assert captured["description"] == "Event sale"
    assert "receipt_email" not in captured


@pytest.mark.asyncio
async def test_create_intent_includes_receipt_email_when_present(monkeypatch, client):
    captured = {}

    def fake_create(**kwargs):
        captured.update(kwargs)
        return _pi(receipt_email=kwargs.get("receipt_email"))

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
    intent = await client.create_intent(amount=500, currency="usd", receipt_email="a@example.com")

    assert captured["receipt_email"] == "a@example.com"
    assert intent.receipt_email == "a@example.com"


@pytest.mark.asyncio
async def test_retrieve_keeps_extra_gateway_fields(monkeypatch, client):
    monkeypatch.setattr(
        stripe.PaymentIntent,
        "retrieve",
        lambda intent_id, api_key=None: _pi(id=intent_id, status="succeeded", latest_charge="ch_1"),
    )
    intent = await client.retrieve_intent("pi_999")

    assert intent.id == "pi_999"
    assert intent.status == "succeeded"
    assert intent.model_dump()["latest_charge"] == "ch_1"


@pytest.mark.asyncio
async def test_invalid_request_message_passes_through(monkeypatch, client):
    def fake_retrieve(intent_id, api_key=None):
        raise stripe.InvalidRequestError("No such payment_intent: 'pi_x'", "intent")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", fake_retrieve)
    with pytest.raises(PaymentProviderError) as ei:
        await client.retrieve_intent("pi_x")
    assert ei.value.message == "No such payment_intent: 'pi_x'"


@pytest.mark.asyncio
async def test_connection_errors_are_recoverable(monkeypatch, client):
    def fake_retrieve(intent_id, api_key=None):
        raise stripe.APIConnectionError("Network error")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", fake_retrieve)
    with pytest.raises(PaymentRecoverableError):
        await client.retrieve_intent("pi_123")


@pytest.mark.asyncio
async def test_missing_secret_key_fails_at_call_time(monkeypatch):
    settings = make_payment_settings()
    settings.stripe_secret_key = None
    client = StripeTerminalClient(settings)
    with pytest.raises(PaymentConfigurationError) as ei:
        await client.retrieve_intent("pi_123")
    assert ei.value.message == "STRIPE_SECRET_KEY not configured"


@pytest.mark.asyncio
async def test_process_payment_intent_on_reader(monkeypatch, client):
    captured = {}

    def fake_process(reader_id, **kwargs):
        captured.update(kwargs, reader_id=reader_id)
        return {"id": reader_id, "action": {"type": "process_payment_intent", "status": "in_progress"}}

    monkeypatch.setattr(stripe.terminal.Reader, "process_payment_intent", fake_process)
    action = await client.process_payment_intent("tmr_123", "pi_123")

    assert captured == {"reader_id": "tmr_123", "payment_intent": "pi_123", "api_key": "sk_test_123"}
    assert action.type == "process_payment_intent"
    assert action.status == "in_progress"


@pytest.mark.asyncio
async def test_missing_reader_fails_at_call_time(client):
    with pytest.raises(PaymentConfigurationError) as ei:
        await client.process_payment_intent("", "pi_123")
    assert ei.value.message == "READER_ID not configured"


@pytest.mark.asyncio
async def test_cancel_reader_action_error(monkeypatch, client):
    def fake_cancel(reader_id, **kwargs):
        raise stripe.InvalidRequestError("Reader tmr_123 has no in-progress action to cancel.", None)

    monkeypatch.setattr(stripe.terminal.Reader, "cancel_action", fake_cancel)
    with pytest.raises(PaymentProviderError):
        await client.cancel_reader_action("tmr_123")


@pytest.mark.asyncio
async def test_cancel_intent(monkeypatch, client):
    monkeypatch.setattr(
        stripe.PaymentIntent,
        "cancel",
        lambda intent_id, api_key=None: _pi(id=intent_id, status="canceled"),
    )
    intent = await client.cancel_intent("pi_123")
    assert intent.status == "canceled"


@pytest.mark.asyncio
async def test_collect_customer_contact_posts_inputs():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"id": "tmr_123", "action": {"type": "collect_inputs", "status": "in_progress"}})

    client = StripeTerminalClient(make_payment_settings(), transport=httpx.MockTransport(handler))
    action = await client.collect_customer_contact("tmr_123", ("email", "phone"))
    await client.aclose()

    assert seen["url"] == "https://api.stripe.com/v1/terminal/readers/tmr_123/collect_inputs"
    assert seen["auth"] == "Bearer sk_test_123"
    assert seen["form"]["inputs[0][type]"] == ["email"]
    assert seen["form"]["inputs[1][type]"] == ["phone"]
    assert action.type == "collect_inputs"


@pytest.mark.asyncio
async def test_collect_customer_contact_error_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Reader is offline", "code": "terminal_reader_offline"}})

    client = StripeTerminalClient(make_payment_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(PaymentProviderError) as ei:
        await client.collect_customer_contact("tmr_123")
    await client.aclose()
    assert ei.value.message == "Reader is offline"
    assert ei.value.details["provider_code"] == "terminal_reader_offline"


def test_webhook_valid_signature(client):
    payload = json.dumps({
        "id": "evt_1",
        "object": "event",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_123", "status": "succeeded"}},
    }).encode()
    event = client.construct_webhook_event(payload, _sign(payload, "whsec_test"), "whsec_test")

    assert event.id == "evt_1"
    assert event.type == "payment_intent.succeeded"
    assert event.object["id"] == "pi_123"


def test_webhook_rejects_tampered_body(client):
    payload = b'{"id": "evt_1", "object": "event", "type": "payment_intent.succeeded", "data": {}}'
    header = _sign(payload, "whsec_test")
    with pytest.raises(PaymentSignatureError):
        client.construct_webhook_event(payload.replace(b"evt_1", b"evt_2"), header, "whsec_test")


def test_webhook_rejects_wrong_secret(client):
    payload = b'{"id": "evt_1", "object": "event", "type": "payment_intent.succeeded", "data": {}}'
    with pytest.raises(PaymentSignatureError):
        client.construct_webhook_event(payload, _sign(payload, "whsec_other"), "whsec_test")


@pytest.mark.parametrize(
    "signature, secret, message",
    [
        (None, "whsec_test", "Missing Stripe-Signature header"),
        ("t=1,v1=abc", None, "Missing STRIPE_WEBHOOK_SECRET"),
    ],
)
def test_webhook_missing_inputs(client, signature, secret, message):
    with pytest.raises(PaymentSignatureError) as ei:
        client.construct_webhook_event(b"{}", signature, secret)
    assert ei.value.message == message
