"""Pytest bootstrap configuration.

Seed the environment before `main` is imported, and provide a stub terminal
gateway that records every call plus settings tuned for fast polling, so that
no test talks to Stripe.
"""
import json
import os
from typing import Any, Optional, Sequence

import pytest

from application.dtos.payments import PaymentIntent, ReaderAction, WebhookEvent
from core.config import Settings
from core.settings import PaymentSettings, TerminalSettings
from infrastructure.external.payments.exceptions import PaymentSignatureError


os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("READER_ID", "tmr_123")


VALID_SIGNATURE = "t=1,v1=valid"


class StubGateway:
    """In-memory TerminalGateway.

    `statuses` is the sequence returned by successive retrieve_intent calls;
    the last entry repeats once the sequence is exhausted. An Exception entry
    is raised instead of returned.
    """

    provider = "stub"

    def __init__(self, statuses: Sequence[Any] = ("succeeded",), *, intent_id: str = "pi_123") -> None:
        self.statuses = list(statuses)
        self.intent_id = intent_id
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.errors: dict[str, Exception] = {}
        self.closed = False

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def kwargs(self, name: str) -> dict[str, Any]:
        return next(kw for call, kw in self.calls if call == name)

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))
        if name in self.errors:
            raise self.errors[name]

    async def create_intent(self, *, amount, currency, metadata=None, receipt_email=None, description=None):
        self._record(
            "create_intent",
            amount=amount,
            currency=currency,
            metadata=metadata,
            receipt_email=receipt_email,
            description=description,
        )
        return PaymentIntent(
            id=self.intent_id,
            status="requires_payment_method",
            amount=amount,
            currency=currency,
            metadata=metadata or {},
            receipt_email=receipt_email,
        )

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        self._record("retrieve_intent", intent_id=intent_id)
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return PaymentIntent(id=intent_id, status=item, amount=1000, currency="usd")

    async def cancel_intent(self, intent_id: str) -> PaymentIntent:
        self._record("cancel_intent", intent_id=intent_id)
        return PaymentIntent(id=intent_id, status="canceled", amount=1000, currency="usd")

    async def process_payment_intent(self, reader_id: str, intent_id: str) -> ReaderAction:
        self._record("process_payment_intent", reader_id=reader_id, intent_id=intent_id)
        return ReaderAction(reader_id=reader_id, type="process_payment_intent", status="in_progress")

    async def cancel_reader_action(self, reader_id: str) -> ReaderAction:
        self._record("cancel_reader_action", reader_id=reader_id)
        return ReaderAction(reader_id=reader_id)

    async def collect_customer_contact(self, reader_id: str, fields: Sequence[str] = ("email", "phone")) -> ReaderAction:
        self._record("collect_customer_contact", reader_id=reader_id, fields=tuple(fields))
        return ReaderAction(reader_id=reader_id, type="collect_inputs", status="in_progress")

    def construct_webhook_event(self, body: bytes, signature: Optional[str], secret: Optional[str]) -> WebhookEvent:
        self.calls.append(("construct_webhook_event", {"signature": signature, "secret": secret}))
        if not secret or signature != VALID_SIGNATURE:
            raise PaymentSignatureError(
                "No signatures found matching the expected signature for payload",
                provider=self.provider,
            )
        payload = json.loads(body)
        return WebhookEvent(id=payload["id"], type=payload["type"], data=payload.get("data") or {})

    async def aclose(self) -> None:
        self.closed = True


def make_payment_settings(**terminal: Any) -> PaymentSettings:
    terminal_cfg = {"poll_interval_seconds": 0.001, "poll_max_attempts": 20, "poll_timeout_seconds": 5.0}
    terminal_cfg.update(terminal)
    return PaymentSettings(
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET="whsec_test",
        READER_ID="tmr_123",
        terminal=TerminalSettings(**terminal_cfg),
    )


@pytest.fixture
def payment_settings() -> PaymentSettings:
    return make_payment_settings()


@pytest.fixture
def app_settings() -> Settings:
    return Settings(DEBUG=False, CORS_ORIGINS=["*"])


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()
