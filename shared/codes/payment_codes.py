"""
Payment specific codes and PaymentIntent status groupings.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    POLL_TIMEOUT = 60003
    CONFIGURATION_ERROR = 60005

    # Payment outcome errors (61xxx)
    PAYMENT_CANCELED = 61000
    POLL_ABORTED = 61001


class IntentStatus:
    """PaymentIntent statuses the poller acts on; any other value keeps it polling."""

    SUCCEEDED = "succeeded"
    CANCELED = "canceled"


# Statuses that end a reader poll
TERMINAL_SUCCESS_STATUSES = frozenset({IntentStatus.SUCCEEDED})
TERMINAL_FAILURE_STATUSES = frozenset({IntentStatus.CANCELED})
