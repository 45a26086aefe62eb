"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Flat names (`STRIPE_SECRET_KEY`, `READER_ID`, `STRIPE_WEBHOOK_SECRET`) are the
conventional Stripe names; nested `STRIPE__*` names are accepted as well.
Tunables live in nested groups, e.g. `TERMINAL__POLL_INTERVAL_SECONDS`.

The object is built once by the application factory and handed to handlers
through dependencies; nothing reads it from module state at request time.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 10.0
    write: float = 10.0
    total: float = 15.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class WebhookSettings(BaseModel):
    tolerance_seconds: int = 300


class TerminalSettings(BaseModel):
    default_currency: str = "usd"
    intent_description: str = "Event sale"
    poll_interval_seconds: float = Field(default=1.5, gt=0)
    # Upper bounds for a single reader poll; whichever is hit first wins
    poll_max_attempts: int = Field(default=200, ge=1)
    poll_timeout_seconds: float = Field(default=300.0, gt=0)
    # Prompt the reader for email/phone after a successful payment
    collect_customer_contact: bool = False


class PaymentSettings(BaseSettings):
    stripe_secret_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("STRIPE_SECRET_KEY", "STRIPE__SECRET_KEY"),
    )
    stripe_webhook_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("STRIPE_WEBHOOK_SECRET", "STRIPE__WEBHOOK_SECRET"),
    )
    reader_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("READER_ID", "STRIPE__READER_ID"),
    )
    api_base: str = Field(
        default="https://api.stripe.com",
        validation_alias=AliasChoices("STRIPE_API_BASE", "STRIPE__API_BASE"),
    )

    terminal: TerminalSettings = Field(default_factory=TerminalSettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
        populate_by_name=True,
    )


def load_payment_settings() -> PaymentSettings:
    """Read payment settings from the environment (and `.env`)."""
    return PaymentSettings()
