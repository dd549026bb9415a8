"""Polling subscription to ``OracleRequest`` events.

The stream remembers the first block holding an event it has not yet
handed out, so a new stream built from ``next_block`` resumes where the
old one stopped without losing events.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Tuple

import structlog

from shared.models.oracle import OracleRequestEvent
from services.oracle_server.blockchain.remote import FlightSuretyRemote

logger = structlog.get_logger(__name__)


class OracleRequestStream:
    """Lazy, endless, restartable sequence of OracleRequest events.

    Parameters
    ----------
    client:
        FlightSuretyApp client exposing block number and log queries.
    from_block:
        First block to read.
    poll_interval_s:
        Sleep between polls when the chain has not advanced.
    timeout_s:
        Bound on each node query.
    max_backoff_s:
        Cap of the exponential backoff after transport errors.
    """

    def __init__(
        self,
        client: FlightSuretyRemote,
        from_block: int = 0,
        poll_interval_s: float = 1.0,
        timeout_s: float = 30.0,
        max_backoff_s: float = 30.0,
    ):
        self.client = client
        self.next_block = from_block
        self.poll_interval_s = poll_interval_s
        self.timeout_s = timeout_s
        self.max_backoff_s = max_backoff_s
        self.errors = 0

    async def poll_once(self) -> Tuple[List[OracleRequestEvent], int]:
        """Fetch events from ``next_block`` up to the chain head.

        Returns the events and the head they were read up to.  The offset
        is left alone; ``events()`` advances it as events are handed out.
        """
        head = await asyncio.wait_for(self.client.get_block_number(), timeout=self.timeout_s)
        if head < self.next_block:
            return [], head
        events = await asyncio.wait_for(
            self.client.get_oracle_requests(self.next_block, head),
            timeout=self.timeout_s,
        )
        return events, head

    async def events(self) -> AsyncIterator[OracleRequestEvent]:
        logger.info("oracle_stream_subscribed", from_block=self.next_block)
        backoff = self.poll_interval_s
        while True:
            try:
                batch, head = await self.poll_once()
            except Exception as exc:
                self.errors += 1
                logger.error(
                    "oracle_stream_error",
                    error=str(exc) or type(exc).__name__,
                    next_block=self.next_block,
                    retry_in_s=backoff,
                )
                await asyncio.sleep(backoff)
                backoff = min(max(backoff, 0.1) * 2, self.max_backoff_s)
                continue

            backoff = self.poll_interval_s
            for position, event in enumerate(batch):
                # Point the offset at the first event not yet handed out.  A
                # block shared with the current event is read again on resume.
                following = batch[position + 1] if position + 1 < len(batch) else None
                if following is None:
                    self.next_block = head + 1
                elif following.block_number is not None:
                    self.next_block = following.block_number
                logger.debug(
                    "oracle_request_received",
                    correlation_id=event.correlation_id,
                    index=event.index,
                    block=event.block_number,
                )
                yield event
            if not batch:
                self.next_block = max(self.next_block, head + 1)
                await asyncio.sleep(self.poll_interval_s)

    def __aiter__(self) -> AsyncIterator[OracleRequestEvent]:
        return self.events()
