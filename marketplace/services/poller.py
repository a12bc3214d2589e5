"""Bounded verification loop run by whoever waits on a checkout.

The loop calls ``verify`` every ``interval`` seconds, stops as soon as the
payment is completed or failed, and gives up after ``max_attempts`` calls with
:class:`VerificationTimeout`. Hitting the cap never touches the payment or the
assignment; it only reports the timeout through ``on_timeout``.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from marketplace import config
from marketplace.errors import VerificationTimeout
from marketplace.services.payment_service import PaymentOrchestrator, VerifyResult

VerifyFn = Callable[[str], Awaitable[VerifyResult]]
TimeoutHook = Callable[[str, int], Awaitable[None]]


async def _pause(interval: float, cancel_event: Optional[asyncio.Event], sleep) -> None:
    if cancel_event is None:
        await sleep(interval)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=interval)
    except asyncio.TimeoutError:
        pass


async def poll_payment(
    verify: VerifyFn,
    reference: str,
    interval: Optional[float] = None,
    max_attempts: Optional[int] = None,
    cancel_event: Optional[asyncio.Event] = None,
    on_timeout: Optional[TimeoutHook] = None,
    sleep=asyncio.sleep,
) -> Optional[VerifyResult]:
    """Poll until settled.

    Returns the settling :class:`VerifyResult`, or the last seen result (possibly
    ``None``) when ``cancel_event`` is set. Task cancellation propagates as usual.
    """
    interval = config.PAYMENT_POLL_INTERVAL if interval is None else interval
    max_attempts = config.PAYMENT_POLL_MAX_ATTEMPTS if max_attempts is None else max_attempts

    result = None
    for attempt in range(1, max_attempts + 1):
        if cancel_event is not None and cancel_event.is_set():
            logging.info("Polling for %s cancelled after %s checks", reference, attempt - 1)
            return result

        result = await verify(reference)
        if result.settled:
            return result

        if attempt < max_attempts:
            await _pause(interval, cancel_event, sleep)

    logging.warning("Verification of %s timed out after %s checks", reference, max_attempts)
    if on_timeout is not None:
        await on_timeout(reference, max_attempts)
    raise VerificationTimeout(
        "Verification timed out. Contact support with your order reference.",
        reference=reference,
        attempts=max_attempts,
    )


async def poll_until_settled(
    orchestrator: PaymentOrchestrator, reference: str, user_id: Optional[str] = None, **kwargs
) -> Optional[VerifyResult]:
    """:func:`poll_payment` wired to an orchestrator, recording timeouts in the activity log."""

    async def verify(ref):
        return await orchestrator.verify(ref, user_id=user_id)

    async def on_timeout(ref, attempts):
        await orchestrator.record_verification_timeout(ref, attempts, user_id=user_id)

    return await poll_payment(verify, reference, on_timeout=on_timeout, **kwargs)
