"""
Terminal gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Optional, Protocol, Sequence, runtime_checkable

from application.dtos.payments import (
    PaymentIntent,
    ReaderAction,
    WebhookEvent,
)


@runtime_checkable
class TerminalGateway(Protocol):
    """Gateway protocol for a card-present payment provider.

    Implementations should be async and side-effect free beyond IO.
    """

    provider: str

    async def create_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Optional[dict[str, str]] = None,
        receipt_email: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PaymentIntent: ...

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent: ...

    async def cancel_intent(self, intent_id: str) -> PaymentIntent: ...

    async def process_payment_intent(self, reader_id: str, intent_id: str) -> ReaderAction: ...

    async def cancel_reader_action(self, reader_id: str) -> ReaderAction: ...

    async def collect_customer_contact(
        self, reader_id: str, fields: Sequence[str] = ("email", "phone")
    ) -> ReaderAction: ...

    def construct_webhook_event(self, body: bytes, signature: Optional[str], secret: Optional[str]) -> WebhookEvent: ...

    async def aclose(self) -> None: ...
