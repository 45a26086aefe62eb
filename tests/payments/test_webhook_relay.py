import json

import pytest

from application.services.webhook_relay import DEFAULT_HANDLERS, WebhookRelay
from infrastructure.external.payments.exceptions import PaymentSignatureError

from conftest import VALID_SIGNATURE, StubGateway


EVENT_TYPES = [
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
    "payment_intent.canceled",
    "terminal.reader.action_failed",
    "customer.created",
]


def _body(event_type: str) -> bytes:
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": {"id": "pi_123"}}}).encode()


def _recording_relay(gateway, secret="whsec_test"):
    seen = []
    handlers = {name: (lambda event, name=name: seen.append(name)) for name in DEFAULT_HANDLERS}
    return WebhookRelay(gateway, secret, handlers=handlers), seen


@pytest.mark.parametrize("event_type", EVENT_TYPES)
def test_bad_signature_never_dispatches(event_type):
    relay, seen = _recording_relay(StubGateway())
    with pytest.raises(PaymentSignatureError):
        relay.handle(_body(event_type), "t=1,v1=forged")
    assert seen == []


def test_missing_secret_rejects_everything():
    relay, seen = _recording_relay(StubGateway(), secret=None)
    with pytest.raises(PaymentSignatureError):
        relay.handle(_body("payment_intent.succeeded"), VALID_SIGNATURE)
    assert seen == []


def test_known_event_reaches_its_handler():
    relay, seen = _recording_relay(StubGateway())
    event = relay.handle(_body("payment_intent.payment_failed"), VALID_SIGNATURE)
    assert event.type == "payment_intent.payment_failed"
    assert seen == ["payment_intent.payment_failed"]


def test_unknown_event_is_accepted_without_handler():
    relay, seen = _recording_relay(StubGateway())
    event = relay.handle(_body("customer.created"), VALID_SIGNATURE)
    assert event.type == "customer.created"
    assert seen == []


@pytest.mark.parametrize("event_type", list(DEFAULT_HANDLERS))
def test_default_handlers_accept_sparse_payloads(event_type):
    relay = WebhookRelay(StubGateway(), "whsec_test")
    body = json.dumps({"id": "evt_1", "type": event_type, "data": {}}).encode()
    relay.handle(body, VALID_SIGNATURE)
