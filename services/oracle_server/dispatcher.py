"""Event dispatcher — answers OracleRequest events.

For every event the oracles registered under its index each pick a
status code at random and submit it, independently of one another.
The contract's consensus rule decides which answer wins.
"""

from __future__ import annotations

import asyncio
import random
from collections import defaultdict
from typing import Any, AsyncIterator, Dict, Optional, Set

import structlog

from shared.models.oracle import (
    STATUS_CODES,
    CallOutcome,
    DispatchResult,
    OracleRequestEvent,
    ResponseSubmission,
    StatusCode,
)
from services.oracle_server.blockchain.remote import FlightSuretyRemote
from services.oracle_server.registry import IndexRegistry
from services.oracle_server.remote_call import call_remote

logger = structlog.get_logger(__name__)


def choose_status_code(rng: Optional[random.Random] = None) -> StatusCode:
    """Uniform pick from the six flight status codes."""
    return (rng or random).choice(STATUS_CODES)


class EventDispatcher:
    """Fan each OracleRequest out to the oracles holding its index.

    The dispatcher keeps no per-event state between calls, so the event
    stream feeding it may be restarted at any point.

    Parameters
    ----------
    client:
        FlightSuretyApp client used to submit responses.
    registry:
        Read through ``matching()`` only.
    timeout_s:
        Bound on each submission.
    rng:
        Source of randomness for status codes (seedable for tests).
    """

    def __init__(
        self,
        client: FlightSuretyRemote,
        registry: IndexRegistry,
        timeout_s: float = 30.0,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.registry = registry
        self.timeout_s = timeout_s
        self._rng = rng or random.Random()
        self._in_flight: Set[asyncio.Task] = set()
        self._stats: Dict[str, Any] = {
            "events": 0,
            "unmatched": 0,
            "submitted": 0,
            "rejected": 0,
            "status_codes": defaultdict(int),
        }

    # ── Single event ─────────────────────────────────────────────────────

    async def handle_event(self, event: OracleRequestEvent) -> DispatchResult:
        """Submit one response per identity registered under ``event.index``."""
        self._stats["events"] += 1
        log = logger.bind(
            correlation_id=event.correlation_id,
            index=event.index,
            subject=event.subject_key,
            timestamp=event.timestamp,
        )
        matches = self.registry.matching(event.index)
        if not matches:
            self._stats["unmatched"] += 1
            log.info("oracle_request_unmatched")
            return DispatchResult(event=event)

        submissions = [
            ResponseSubmission(
                identity=identity,
                index=event.index,
                airline=event.airline,
                flight=event.flight,
                timestamp=event.timestamp,
                status_code=choose_status_code(self._rng),
                correlation_id=event.correlation_id,
            )
            for identity in matches
        ]
        log.info(
            "oracle_request_dispatching",
            oracles=[s.identity.label for s in submissions],
        )

        outcomes = list(await asyncio.gather(*(self._submit(s) for s in submissions)))
        result = DispatchResult(event=event, submissions=submissions, outcomes=outcomes)
        log.info(
            "oracle_request_dispatched",
            submitted=result.succeeded,
            rejected=result.failed,
        )
        return result

    async def _submit(self, submission: ResponseSubmission) -> CallOutcome:
        outcome = await call_remote(
            "submit_oracle_response",
            lambda: self.client.submit_oracle_response(
                submission.identity.address,
                submission.index,
                submission.airline,
                submission.flight,
                submission.timestamp,
                int(submission.status_code),
            ),
            identity=submission.identity,
            timeout_s=self.timeout_s,
            correlation_id=submission.correlation_id,
            index=submission.index,
            status_code=int(submission.status_code),
        )
        if outcome.ok:
            self._stats["submitted"] += 1
            self._stats["status_codes"][submission.status_code.name] += 1
        else:
            self._stats["rejected"] += 1
        logger.info(
            "oracle_response_sent",
            account=submission.identity.label,
            correlation_id=submission.correlation_id,
            status_code=int(submission.status_code),
            ok=outcome.ok,
            error=outcome.error,
        )
        return outcome

    # ── Continuous loop ──────────────────────────────────────────────────

    async def run(self, events: AsyncIterator[OracleRequestEvent]) -> None:
        """Consume *events* forever, one task per event.

        A slow event never holds up the next one.  When *events* runs out
        the in-flight events are awaited; cancelling ``run`` cancels them.
        """
        logger.info("event_dispatcher_started")
        try:
            async for event in events:
                task = asyncio.create_task(
                    self.handle_event(event),
                    name=f"oracle-request-{event.correlation_id}",
                )
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
        except asyncio.CancelledError:
            pending = list(self._in_flight)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info("event_dispatcher_cancelled", cancelled=len(pending))
            raise
        await self.drain()
        logger.info("event_dispatcher_stopped")

    async def drain(self) -> None:
        """Wait for every in-flight event to finish."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight))

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        return {
            **{k: v for k, v in self._stats.items() if k != "status_codes"},
            "status_codes": dict(self._stats["status_codes"]),
            "in_flight": len(self._in_flight),
        }
