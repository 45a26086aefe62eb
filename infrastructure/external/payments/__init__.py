"""
Factory for terminal gateway clients.
"""
from __future__ import annotations

from typing import Optional

from application.ports.payment_gateway import TerminalGateway
from core.settings import PaymentSettings


def get_payment_gateway(settings: PaymentSettings, provider: Optional[str] = None) -> TerminalGateway:
    name = (provider or "stripe").lower()
    if name == "stripe":
        from .stripe_client import StripeTerminalClient
        return StripeTerminalClient(settings)
    raise ValueError(f"Unsupported payment provider: {name}")
