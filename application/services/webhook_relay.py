"""
Webhook verifier and relay.

Verification always precedes dispatch: a payload whose signature does not
check out raises before any handler sees it. Verified events of any type are
acknowledged; unknown types are logged and otherwise ignored.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.payments import WebhookEvent
from application.ports.payment_gateway import TerminalGateway
from core.logging_config import get_logger


logger = get_logger(__name__)

Handler = Callable[[WebhookEvent], None]


def _on_intent_succeeded(event: WebhookEvent) -> None:
    obj = event.object
    logger.info(
        "payment_succeeded",
        event_id=event.id,
        intent_id=obj.get("id"),
        amount=obj.get("amount"),
        currency=obj.get("currency"),
    )


def _on_intent_payment_failed(event: WebhookEvent) -> None:
    obj = event.object
    last_error = obj.get("last_payment_error") or {}
    logger.warning(
        "payment_failed",
        event_id=event.id,
        intent_id=obj.get("id"),
        reason=last_error.get("message"),
        decline_code=last_error.get("decline_code"),
    )


def _on_intent_canceled(event: WebhookEvent) -> None:
    obj = event.object
    logger.info(
        "payment_canceled",
        event_id=event.id,
        intent_id=obj.get("id"),
        cancellation_reason=obj.get("cancellation_reason"),
    )


def _on_reader_action_succeeded(event: WebhookEvent) -> None:
    action = event.object.get("action") or {}
    logger.info(
        "reader_action_succeeded",
        event_id=event.id,
        reader_id=event.object.get("id"),
        action_type=action.get("type"),
    )


def _on_reader_action_failed(event: WebhookEvent) -> None:
    action = event.object.get("action") or {}
    logger.warning(
        "reader_action_failed",
        event_id=event.id,
        reader_id=event.object.get("id"),
        action_type=action.get("type"),
        reason=action.get("failure_message"),
    )


DEFAULT_HANDLERS: dict[str, Handler] = {
    "payment_intent.succeeded": _on_intent_succeeded,
    "payment_intent.payment_failed": _on_intent_payment_failed,
    "payment_intent.canceled": _on_intent_canceled,
    "terminal.reader.action_succeeded": _on_reader_action_succeeded,
    "terminal.reader.action_failed": _on_reader_action_failed,
}


class WebhookRelay:
    def __init__(
        self,
        gateway: TerminalGateway,
        secret: Optional[str],
        handlers: Optional[dict[str, Handler]] = None,
    ) -> None:
        self.gateway = gateway
        self.secret = secret
        self.handlers = dict(DEFAULT_HANDLERS if handlers is None else handlers)

    def verify(self, body: bytes, signature: Optional[str]) -> WebhookEvent:
        """Authenticate the raw body; raises PaymentSignatureError on mismatch."""
        return self.gateway.construct_webhook_event(body, signature, self.secret)

    def dispatch(self, event: WebhookEvent) -> None:
        handler = self.handlers.get(event.type)
        if handler is None:
            logger.info("webhook_unhandled_event", event_id=event.id, event_type=event.type)
            return
        handler(event)

    def handle(self, body: bytes, signature: Optional[str]) -> WebhookEvent:
        event = self.verify(body, signature)
        logger.info("webhook_verified", event_id=event.id, event_type=event.type)
        self.dispatch(event)
        return event
