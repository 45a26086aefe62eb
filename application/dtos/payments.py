"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator


class CreatePaymentIntent(BaseModel):
    """Body of POST /create-payment-intent.

    `amount` stays optional here so that a missing amount reaches the service
    and is reported as "Missing amount" instead of a generic schema error.
    """

    amount: Optional[StrictInt] = None
    currency: Optional[str] = None
    metadata: Optional[dict[str, str]] = None
    receipt_email: Optional[str] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _stringify_metadata(cls, v: Any) -> Any:
        # Stripe stores metadata values as strings; form-encode scalars the same way
        if not isinstance(v, dict):
            return v
        out = {}
        for key, value in v.items():
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif isinstance(value, (int, float)):
                value = str(value)
            out[key] = value
        return out

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None

    @field_validator("receipt_email")
    @classmethod
    def _blank_email_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class ProcessOnReader(BaseModel):
    payment_intent: Optional[str] = None


class CancelPayment(BaseModel):
    payment_intent: Optional[str] = None


class PaymentIntent(BaseModel):
    """Gateway-owned PaymentIntent; extra gateway fields are kept verbatim."""

    id: str
    status: str
    amount: Optional[int] = None
    currency: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    receipt_email: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class ReaderAction(BaseModel):
    reader_id: str
    type: Optional[str] = None
    status: Optional[str] = None
    failure_message: Optional[str] = None


class WebhookEvent(BaseModel):
    id: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def object(self) -> dict[str, Any]:
        return self.data.get("object") or {}


# Poll outcomes: exactly one of these is returned per poll


@dataclass(frozen=True)
class PollSucceeded:
    intent: PaymentIntent
    attempts: int


@dataclass(frozen=True)
class PollTimedOut:
    intent_id: str
    attempts: int
    elapsed: float
    last_status: Optional[str] = None


@dataclass(frozen=True)
class PollFailed:
    intent_id: str
    reason: str
    attempts: int
    intent: Optional[PaymentIntent] = None


PollOutcome = Union[PollSucceeded, PollTimedOut, PollFailed]
