"""
Bounded completion poller for PaymentIntents dispatched to a reader.

The poller queries the gateway sequentially (one outstanding query at a time)
until the intent reaches a terminal status, the attempt limit is reached, the
deadline passes, or the caller asks it to stop. Policy for `canceled`: it is a
terminal *failure*, reported as `PollFailed(reason="canceled")`.
"""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from application.dtos.payments import (
    PollFailed,
    PollOutcome,
    PollSucceeded,
    PollTimedOut,
)
from application.ports.payment_gateway import TerminalGateway
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, MissingParameterException
from shared.codes.payment_codes import (
    PaymentCode,
    TERMINAL_FAILURE_STATUSES,
    TERMINAL_SUCCESS_STATUSES,
)


logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]
AbortCheck = Callable[[], Awaitable[bool]]


class IntentPoller:
    def __init__(
        self,
        gateway: TerminalGateway,
        *,
        interval: float = 1.5,
        max_attempts: int = 200,
        timeout: float = 300.0,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        if interval <= 0 or max_attempts < 1 or timeout <= 0:
            raise ValueError("interval and timeout must be positive and max_attempts at least 1")
        self.gateway = gateway
        self.interval = interval
        self.max_attempts = max_attempts
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    async def poll(self, intent_id: str, *, should_abort: Optional[AbortCheck] = None) -> PollOutcome:
        """Poll `intent_id` until terminal, timed out, or aborted.

        Recoverable gateway errors consume an attempt and polling continues;
        any other gateway error propagates to the caller unchanged.
        """
        if not intent_id:
            raise MissingParameterException("payment_intent")

        started = self._clock()
        attempts = 0
        last_status: Optional[str] = None

        while True:
            attempts += 1
            try:
                intent = await self.gateway.retrieve_intent(intent_id)
            except BusinessException as exc:
                if exc.code != PaymentCode.PROVIDER_RECOVERABLE:
                    raise
                logger.warning("reader_poll_transient_error", intent_id=intent_id, attempt=attempts, error=exc.message)
            else:
                last_status = intent.status
                logger.debug("reader_poll_tick", intent_id=intent_id, attempt=attempts, status=intent.status)
                if intent.status in TERMINAL_SUCCESS_STATUSES:
                    logger.info("reader_poll_succeeded", intent_id=intent_id, attempts=attempts)
                    return PollSucceeded(intent=intent, attempts=attempts)
                if intent.status in TERMINAL_FAILURE_STATUSES:
                    logger.info("reader_poll_failed", intent_id=intent_id, attempts=attempts, status=intent.status)
                    return PollFailed(intent_id=intent_id, reason=intent.status, attempts=attempts, intent=intent)

            elapsed = self._clock() - started
            # Give up before sleeping if the next query would land past the deadline
            if attempts >= self.max_attempts or elapsed + self.interval > self.timeout:
                logger.warning(
                    "reader_poll_timed_out",
                    intent_id=intent_id,
                    attempts=attempts,
                    elapsed=round(elapsed, 3),
                    last_status=last_status,
                )
                return PollTimedOut(intent_id=intent_id, attempts=attempts, elapsed=elapsed, last_status=last_status)

            if should_abort is not None and await should_abort():
                logger.info("reader_poll_aborted", intent_id=intent_id, attempts=attempts, last_status=last_status)
                return PollFailed(intent_id=intent_id, reason="aborted", attempts=attempts)

            await self._sleep(self.interval)
