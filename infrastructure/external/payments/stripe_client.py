"""
Stripe Terminal adapter using the official stripe-python SDK.

Notes on SDK usage:
- Server-driven Terminal flow: PaymentIntents are created with
  `payment_method_types=["card_present"]` and handed to a reader through
  `stripe.terminal.Reader.process_payment_intent`.
- The secret key is passed per call (`api_key=`) rather than assigned to the
  module-level `stripe.api_key`, so two differently configured clients can
  coexist in one process.
- SDK calls are blocking and run in a worker thread.
- `collect_inputs` is posted directly over httpx; its form encoding is simple
  and the endpoint is newer than some SDK releases.
- Webhook verification uses `stripe.Webhook.construct_event` with the
  `Stripe-Signature` header and the raw request body.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence

import stripe

from application.dtos.payments import PaymentIntent, ReaderAction, WebhookEvent
from core.logging_config import get_logger
from core.settings import PaymentSettings
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentConfigurationError,
    PaymentProviderError,
    PaymentRecoverableError,
    PaymentSignatureError,
)


logger = get_logger(__name__)

# Reader prompt titles for collect_inputs, keyed by input type
CONTACT_INPUT_TITLES = {
    "email": "Enter your email for a receipt",
    "phone": "Enter your phone number for a receipt",
}


def _as_dict(obj: Any) -> dict[str, Any]:
    # Older SDKs: to_dict() is shallow and to_dict_recursive() exists.
    # Newer SDKs: to_dict() is recursive and the other is gone.
    for name in ("to_dict_recursive", "to_dict"):
        convert = getattr(obj, name, None)
        if callable(convert):
            return convert()
    return dict(obj)


class StripeTerminalClient(BasePaymentClient):
    provider = "stripe"

    def __init__(self, settings: PaymentSettings, *, transport=None):
        super().__init__(
            timeouts=settings.timeouts.model_dump(),
            retry={"max": settings.retry.max, "base": settings.retry.base_backoff},
            transport=transport,
        )
        self._settings = settings

    # Configuration is checked lazily so that webhook-only or misconfigured
    # deployments still start; the failure surfaces at the gateway boundary.
    def _api_key(self) -> str:
        key = self._settings.stripe_secret_key
        if not key:
            raise PaymentConfigurationError("STRIPE_SECRET_KEY", provider=self.provider)
        return key

    def _reader(self, reader_id: str) -> str:
        if not reader_id:
            raise PaymentConfigurationError("READER_ID", provider=self.provider)
        return reader_id

    def _translate(self, exc: Exception) -> Exception:
        message = getattr(exc, "user_message", None) or str(exc)
        code = getattr(exc, "code", None)
        if isinstance(exc, (stripe.APIConnectionError, stripe.RateLimitError)):
            return PaymentRecoverableError(message, provider=self.provider, provider_code=code)
        return PaymentProviderError(message, provider=self.provider, provider_code=code)

    async def _sdk(self, fn, *args, **kwargs) -> dict[str, Any]:
        try:
            result = await self._call_sync(fn, *args, **kwargs)
        except stripe.StripeError as exc:
            raise self._translate(exc) from exc
        return _as_dict(result)

    async def create_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Optional[dict[str, str]] = None,
        receipt_email: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PaymentIntent:
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "payment_method_types": ["card_present"],
            "capture_method": "automatic",
            "metadata": metadata or {},
        }
        if description:
            params["description"] = description
        # Stripe rejects an empty receipt_email; omit it entirely when absent
        if receipt_email:
            params["receipt_email"] = receipt_email

        pi = await self._sdk(stripe.PaymentIntent.create, api_key=self._api_key(), **params)
        self._log("stripe_intent_created", intent_id=pi.get("id"), amount=amount, currency=currency)
        return PaymentIntent.model_validate(pi)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        pi = await self._sdk(stripe.PaymentIntent.retrieve, intent_id, api_key=self._api_key())
        return PaymentIntent.model_validate(pi)

    async def cancel_intent(self, intent_id: str) -> PaymentIntent:
        pi = await self._sdk(stripe.PaymentIntent.cancel, intent_id, api_key=self._api_key())
        self._log("stripe_intent_canceled", intent_id=intent_id, status=pi.get("status"))
        return PaymentIntent.model_validate(pi)

    async def process_payment_intent(self, reader_id: str, intent_id: str) -> ReaderAction:
        reader = await self._sdk(
            stripe.terminal.Reader.process_payment_intent,
            self._reader(reader_id),
            payment_intent=intent_id,
            api_key=self._api_key(),
        )
        action = self._action_from_reader(reader_id, reader)
        self._log("stripe_reader_processing", reader_id=reader_id, intent_id=intent_id, action_status=action.status)
        return action

    async def cancel_reader_action(self, reader_id: str) -> ReaderAction:
        reader = await self._sdk(
            stripe.terminal.Reader.cancel_action,
            self._reader(reader_id),
            api_key=self._api_key(),
        )
        return self._action_from_reader(reader_id, reader)

    async def collect_customer_contact(
        self, reader_id: str, fields: Sequence[str] = ("email", "phone")
    ) -> ReaderAction:
        reader_id = self._reader(reader_id)
        form: dict[str, str] = {}
        for i, field in enumerate(fields):
            form[f"inputs[{i}][type]"] = field
            form[f"inputs[{i}][custom_text][title]"] = CONTACT_INPUT_TITLES.get(field, field)
        url = f"{self._settings.api_base.rstrip('/')}/v1/terminal/readers/{reader_id}/collect_inputs"
        headers = {"Authorization": f"Bearer {self._api_key()}"}

        async def _post():
            async with self.client() as http:
                return await http.post(url, data=form, headers=headers)

        resp = await self._retry(_post)
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code >= 400:
            err = body.get("error") or {}
            raise PaymentProviderError(
                err.get("message") or f"collect_inputs failed with HTTP {resp.status_code}",
                provider=self.provider,
                provider_code=err.get("code"),
            )
        action = self._action_from_reader(reader_id, body)
        self._log("stripe_reader_collect_inputs", reader_id=reader_id, fields=list(fields), action_status=action.status)
        return action

    def construct_webhook_event(self, body: bytes, signature: Optional[str], secret: Optional[str]) -> WebhookEvent:
        if not secret:
            raise PaymentSignatureError("Missing STRIPE_WEBHOOK_SECRET", provider=self.provider)
        if not signature:
            raise PaymentSignatureError("Missing Stripe-Signature header", provider=self.provider)
        try:
            event = stripe.Webhook.construct_event(
                payload=body,
                sig_header=signature,
                secret=secret,
                tolerance=self._settings.webhook.tolerance_seconds,
            )
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise PaymentSignatureError(str(exc), provider=self.provider) from exc
        event = _as_dict(event)
        return WebhookEvent(
            id=str(event.get("id")),
            type=str(event.get("type")),
            data=event.get("data") or {},
        )

    @staticmethod
    def _action_from_reader(reader_id: str, reader: dict[str, Any]) -> ReaderAction:
        action = reader.get("action") or {}
        return ReaderAction(
            reader_id=str(reader.get("id") or reader_id),
            type=action.get("type"),
            status=action.get("status"),
            failure_message=action.get("failure_message"),
        )
