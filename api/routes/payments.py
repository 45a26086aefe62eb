"""
Payments API routes.

Paths and body shapes match what the POS front-end already calls. Keep this
thin: no SDK details here.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse

from application.dtos.payments import CancelPayment, CreatePaymentIntent, ProcessOnReader
from application.services.payment_service import PaymentService
from application.services.webhook_relay import WebhookRelay
from api.dependencies import get_payment_service, get_webhook_relay
from core.logging_config import get_logger
from core.response import (
    IntentCreatedBody,
    ProcessResultBody,
    SuccessBody,
    WebhookAckBody,
    success_response,
)
from infrastructure.external.payments.exceptions import PaymentSignatureError


router = APIRouter(tags=["Payments"])
logger = get_logger(__name__)


@router.post("/create-payment-intent", summary="Create card-present payment intent", response_model=IntentCreatedBody)
async def create_payment_intent(
    payload: CreatePaymentIntent,
    service: PaymentService = Depends(get_payment_service),
):
    intent_id = await service.create_intent(payload)
    return {"payment_intent": intent_id}


@router.post("/process-on-reader", summary="Process intent on reader and wait", response_model=ProcessResultBody)
async def process_on_reader(
    payload: ProcessOnReader,
    request: Request,
    background_tasks: BackgroundTasks,
    service: PaymentService = Depends(get_payment_service),
):
    intent = await service.process_on_reader(payload, should_abort=request.is_disconnected)
    if service.settings.terminal.collect_customer_contact:
        # Respond first; the contact prompt runs after the response is sent
        background_tasks.add_task(service.collect_customer_contact, intent.id)
    return success_response(payment_intent=intent.model_dump(mode="json"))


@router.post("/cancel-payment", summary="Cancel reader action and intent", response_model=SuccessBody)
async def cancel_payment(
    payload: Optional[CancelPayment] = None,
    service: PaymentService = Depends(get_payment_service),
):
    # An empty body still cancels whatever the reader is doing
    await service.cancel_payment(payload or CancelPayment())
    return success_response()


@router.post("/webhook", summary="Stripe webhook", response_model=WebhookAckBody)
async def webhook(request: Request, relay: WebhookRelay = Depends(get_webhook_relay)):
    # Signature covers the exact bytes sent; never parse before verifying
    raw_body = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        relay.handle(raw_body, signature)
    except PaymentSignatureError as exc:
        logger.warning("webhook_verification_failed", error=exc.message)
        return PlainTextResponse(f"Webhook Error: {exc.message}", status_code=400)
    return {"received": True}
