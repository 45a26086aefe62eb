"""
Application service orchestrating card-present payment use-cases.

This class depends only on the application TerminalGateway port and DTOs.
Gateway implementations are provided by infrastructure and must be injected
from the composition root (API), keeping dependencies one-way.
"""
from __future__ import annotations

from typing import Optional

from application.dtos.payments import (
    CancelPayment,
    CreatePaymentIntent,
    PaymentIntent,
    PollSucceeded,
    PollTimedOut,
    ProcessOnReader,
)
from application.ports.payment_gateway import TerminalGateway
from application.services.intent_poller import AbortCheck, IntentPoller
from core.logging_config import get_logger
from core.settings import PaymentSettings
from domain.common.exceptions import (
    BusinessException,
    DomainValidationException,
    MissingParameterException,
)
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)


class PaymentTimeoutError(BusinessException):
    def __init__(self, intent_id: str, *, attempts: int, elapsed: float, last_status: Optional[str]):
        super().__init__(
            code=PaymentCode.POLL_TIMEOUT,
            message=f"Timed out waiting for payment {intent_id} to complete",
            error_type="PaymentTimeout",
            details={
                "payment_intent": intent_id,
                "attempts": attempts,
                "elapsed": round(elapsed, 3),
                "last_status": last_status,
            },
        )


class PaymentCanceledError(BusinessException):
    def __init__(self, intent_id: str):
        super().__init__(
            code=PaymentCode.PAYMENT_CANCELED,
            message=f"Payment {intent_id} was canceled",
            error_type="PaymentCanceled",
            details={"payment_intent": intent_id},
        )


class PaymentPollAbortedError(BusinessException):
    def __init__(self, intent_id: str):
        super().__init__(
            code=PaymentCode.POLL_ABORTED,
            message=f"Stopped waiting for payment {intent_id}: client went away",
            error_type="PaymentPollAborted",
            details={"payment_intent": intent_id},
        )


class PaymentService:
    def __init__(
        self,
        gateway: TerminalGateway,
        settings: PaymentSettings,
        poller: Optional[IntentPoller] = None,
    ) -> None:
        self.gateway = gateway
        self.settings = settings
        terminal = settings.terminal
        self.poller = poller or IntentPoller(
            gateway,
            interval=terminal.poll_interval_seconds,
            max_attempts=terminal.poll_max_attempts,
            timeout=terminal.poll_timeout_seconds,
        )

    @property
    def reader_id(self) -> str:
        return self.settings.reader_id or ""

    async def create_intent(self, req: CreatePaymentIntent) -> str:
        """Create a card-present intent and return the gateway's id unchanged."""
        if not req.amount:
            raise MissingParameterException("amount", "Missing amount")
        if req.amount < 0:
            raise DomainValidationException("Amount must be a positive integer", field="amount")

        currency = req.currency or self.settings.terminal.default_currency
        logger.info(
            "payment_intent_create_request",
            amount=req.amount,
            currency=currency,
            has_receipt_email=bool(req.receipt_email),
        )
        intent = await self.gateway.create_intent(
            amount=req.amount,
            currency=currency,
            metadata=req.metadata or {},
            receipt_email=req.receipt_email,
            description=self.settings.terminal.intent_description,
        )
        logger.info("payment_intent_created", intent_id=intent.id, status=intent.status)
        return intent.id

    async def process_on_reader(
        self,
        req: ProcessOnReader,
        *,
        should_abort: Optional[AbortCheck] = None,
    ) -> PaymentIntent:
        """Dispatch the intent to the configured reader and wait for a terminal status."""
        intent_id = req.payment_intent
        if not intent_id:
            raise MissingParameterException("payment_intent")

        logger.info("reader_process_request", intent_id=intent_id, reader_id=self.reader_id)
        await self.gateway.process_payment_intent(self.reader_id, intent_id)

        outcome = await self.poller.poll(intent_id, should_abort=should_abort)
        if isinstance(outcome, PollSucceeded):
            return outcome.intent
        if isinstance(outcome, PollTimedOut):
            raise PaymentTimeoutError(
                intent_id,
                attempts=outcome.attempts,
                elapsed=outcome.elapsed,
                last_status=outcome.last_status,
            )
        if outcome.reason == "aborted":
            raise PaymentPollAbortedError(intent_id)
        raise PaymentCanceledError(intent_id)

    async def cancel_payment(self, req: CancelPayment) -> None:
        """Cancel the reader's current action, then the intent if one was given.

        A reader with nothing to cancel is normal, so failure of the first step
        is only logged. Missing configuration is not a reader state and
        propagates.
        """
        try:
            await self.gateway.cancel_reader_action(self.reader_id)
            logger.info("reader_action_canceled", reader_id=self.reader_id)
        except BusinessException as exc:
            if exc.code == PaymentCode.CONFIGURATION_ERROR:
                raise
            logger.warning(
                "reader_cancel_action_failed",
                reader_id=self.reader_id,
                error=exc.message,
                error_type=exc.error_type,
            )

        if req.payment_intent:
            intent = await self.gateway.cancel_intent(req.payment_intent)
            logger.info("payment_intent_canceled", intent_id=intent.id, status=intent.status)

    async def collect_customer_contact(self, intent_id: str) -> None:
        """Prompt the reader for receipt contact details after a payment.

        Runs detached from the HTTP response; errors end here and are logged.
        """
        try:
            action = await self.gateway.collect_customer_contact(self.reader_id, ("email", "phone"))
        except Exception as exc:
            logger.warning(
                "reader_collect_contact_failed",
                intent_id=intent_id,
                reader_id=self.reader_id,
                error=str(exc),
                exc_info=not isinstance(exc, BusinessException),
            )
            return
        logger.info(
            "reader_collect_contact_started",
            intent_id=intent_id,
            reader_id=self.reader_id,
            action_status=action.status,
        )
