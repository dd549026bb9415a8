"""Bounded, retry-free wrapper shared by every call into FlightSuretyApp.

Registration, index queries and response submissions all have the same
failure-isolation semantics: await the remote side with a timeout, then
classify the result as ``success`` or ``recoverable_failure``.  Nothing
raised by the remote side escapes this helper.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

import structlog

from shared.models.oracle import CallOutcome, CallStatus, Identity

logger = structlog.get_logger(__name__)


async def call_remote(
    operation: str,
    call: Callable[[], Awaitable[Any]],
    *,
    identity: Identity,
    timeout_s: float,
    **context: Any,
) -> CallOutcome:
    """Run *call* once under ``asyncio.wait_for`` and classify the outcome.

    Parameters
    ----------
    operation:
        Name used in logs, e.g. ``register_oracle``.
    call:
        Zero-argument factory returning the awaitable, so the coroutine is
        only created inside the timeout scope.
    identity:
        The signer the call is issued as.
    timeout_s:
        Upper bound on the wait; a timeout is a recoverable failure.
    context:
        Extra key/values attached to the log lines (index, correlation id…).
    """
    log = logger.bind(
        operation=operation,
        address=identity.address,
        account=identity.label,
        **context,
    )
    start = time.perf_counter()
    try:
        result = await asyncio.wait_for(call(), timeout=timeout_s)
    except asyncio.TimeoutError:
        elapsed = (time.perf_counter() - start) * 1000
        log.warning("remote_call_timeout", timeout_s=timeout_s)
        return CallOutcome(
            operation=operation,
            status=CallStatus.RECOVERABLE_FAILURE,
            address=identity.address,
            ordinal=identity.ordinal,
            error=f"timed out after {timeout_s}s",
            timed_out=True,
            elapsed_ms=round(elapsed, 2),
        )
    except Exception as exc:
        elapsed = (time.perf_counter() - start) * 1000
        log.warning("remote_call_failed", error=str(exc), error_type=type(exc).__name__)
        return CallOutcome(
            operation=operation,
            status=CallStatus.RECOVERABLE_FAILURE,
            address=identity.address,
            ordinal=identity.ordinal,
            error=str(exc) or type(exc).__name__,
            elapsed_ms=round(elapsed, 2),
        )

    elapsed = (time.perf_counter() - start) * 1000
    log.debug("remote_call_ok", elapsed_ms=round(elapsed, 2))
    return CallOutcome(
        operation=operation,
        status=CallStatus.SUCCESS,
        address=identity.address,
        ordinal=identity.ordinal,
        result=result,
        elapsed_ms=round(elapsed, 2),
    )
