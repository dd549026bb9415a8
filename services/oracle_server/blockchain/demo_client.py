"""DemoFlightSuretyClient — in-memory stand-in for FlightSuretyApp.

Used when no contract address is configured.  It mimics the oracle
rules of the contract closely enough for the server to run end to end:

* ``registerOracle`` needs the registration fee and hands out three
  distinct indices in ``[0, max_index]``; registering twice is rejected.
* ``fetch_flight_status`` opens a request under a random index and emits
  ``OracleRequest``.
* ``submitOracleResponse`` is accepted only from an oracle holding the
  request index while the request is open; once ``min_responses``
  oracles agree on a status the request closes.

Every accepted transaction mines one block, so the event stream can be
polled by block number exactly as against a real node.
"""

from __future__ import annotations

import asyncio
import hashlib
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import structlog

from shared.models.oracle import STATUS_CODES, OracleRequestEvent
from services.oracle_server.errors import RemoteCallError

logger = structlog.get_logger(__name__)

REGISTRATION_FEE_WEI = 10**18
MIN_RESPONSES = 3
INDICES_PER_ORACLE = 3


@dataclass
class _OpenRequest:
    requester: str
    is_open: bool = True
    responses: Dict[int, List[str]] = field(default_factory=dict)


def _demo_address(seed: str) -> str:
    return "0x" + hashlib.sha256(seed.encode()).hexdigest()[:40]


class DemoFlightSuretyClient:
    """Simulated FlightSuretyApp oracle surface.

    Parameters
    ----------
    account_count:
        Number of synthetic accounts the "node" exposes.
    max_index:
        Highest index handed out (inclusive).
    min_responses:
        Agreeing responses needed to close a request.
    seed:
        Seed for index assignment, request indices and latency.
    latency_s:
        Upper bound of the random delay applied to every call.
    """

    demo_mode = True

    def __init__(
        self,
        account_count: int = 40,
        max_index: int = 9,
        min_responses: int = MIN_RESPONSES,
        seed: Optional[int] = None,
        latency_s: float = 0.0,
    ):
        self.max_index = max_index
        self.min_responses = min_responses
        self.latency_s = latency_s
        self._rng = random.Random(seed)
        self._accounts = [_demo_address(f"flightsurety-account-{i}") for i in range(account_count)]
        self._oracles: Dict[str, Tuple[int, ...]] = {}
        self._requests: Dict[Tuple[int, str, str, int], _OpenRequest] = {}
        self._events: List[Tuple[int, OracleRequestEvent]] = []
        self._status_info: List[Dict[str, Any]] = []
        self._block = 0
        self._tx_counter = 0
        self._connected = False

    # ── Connection ───────────────────────────────────────────────────────

    async def connect(self) -> None:
        self._connected = True
        logger.info("flight_surety_demo_mode", accounts=len(self._accounts))

    async def close(self) -> None:
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ── Helpers ──────────────────────────────────────────────────────────

    async def _latency(self) -> None:
        if self.latency_s > 0:
            await asyncio.sleep(self._rng.uniform(0, self.latency_s))

    def _mine(self, label: str) -> str:
        self._tx_counter += 1
        self._block += 1
        return "0x" + hashlib.sha256(
            f"{label}-{self._tx_counter}-{time.time()}".encode()
        ).hexdigest()

    # ── Chain reads ──────────────────────────────────────────────────────

    async def get_accounts(self) -> List[str]:
        return list(self._accounts)

    async def get_block_number(self) -> int:
        return self._block

    async def get_my_indexes(self, address: str) -> List[int]:
        await self._latency()
        indexes = self._oracles.get(address)
        if indexes is None:
            raise RemoteCallError("getMyIndexes", "Not registered as an oracle")
        return list(indexes)

    async def get_oracle_requests(self, from_block: int, to_block: int) -> List[OracleRequestEvent]:
        return [e for block, e in self._events if from_block <= block <= to_block]

    def get_flight_status_info(self) -> List[Dict[str, Any]]:
        """Closed requests with the status the oracles agreed on."""
        return list(self._status_info)

    # ── Transactions ─────────────────────────────────────────────────────

    async def register_oracle(self, address: str, stake_wei: int) -> str:
        await self._latency()
        if stake_wei < REGISTRATION_FEE_WEI:
            raise RemoteCallError("registerOracle", "Registration fee is required")
        if address in self._oracles:
            raise RemoteCallError("registerOracle", "Oracle already registered")
        indexes = tuple(self._rng.sample(range(self.max_index + 1), INDICES_PER_ORACLE))
        self._oracles[address] = indexes
        return self._mine(f"register-{address}")

    async def fetch_flight_status(
        self,
        airline: str,
        flight: str,
        timestamp: Optional[int] = None,
        requester: str = "",
    ) -> OracleRequestEvent:
        """Open an oracle request, as the dapp's "fetch flight status" button does."""
        await self._latency()
        index = self._rng.randint(0, self.max_index)
        ts = timestamp if timestamp is not None else int(datetime.now(timezone.utc).timestamp())
        self._requests[(index, airline, flight, ts)] = _OpenRequest(requester=requester)
        tx_hash = self._mine(f"fetch-{airline}-{flight}-{ts}")
        event = OracleRequestEvent(
            index=index,
            airline=airline,
            flight=flight,
            timestamp=ts,
            correlation_id=f"{tx_hash[:12]}:0",
            block_number=self._block,
        )
        self._events.append((self._block, event))
        logger.info(
            "oracle_request_emitted",
            index=index,
            airline=airline,
            flight=flight,
            timestamp=ts,
            block=self._block,
        )
        return event

    async def submit_oracle_response(
        self,
        address: str,
        index: int,
        airline: str,
        flight: str,
        timestamp: int,
        status_code: int,
    ) -> str:
        await self._latency()
        if index not in self._oracles.get(address, ()):
            raise RemoteCallError("submitOracleResponse", "Index does not match oracle request")
        if status_code not in STATUS_CODES:
            raise RemoteCallError("submitOracleResponse", f"Unknown status code {status_code}")
        request = self._requests.get((index, airline, flight, timestamp))
        if request is None or not request.is_open:
            raise RemoteCallError("submitOracleResponse", "Flight or timestamp do not match oracle request")
        voters = [a for votes in request.responses.values() for a in votes]
        if address in voters:
            raise RemoteCallError("submitOracleResponse", "Oracle already responded")

        request.responses.setdefault(status_code, []).append(address)
        tx_hash = self._mine(f"response-{address}-{index}-{flight}")

        if len(request.responses[status_code]) >= self.min_responses:
            request.is_open = False
            info = {
                "airline": airline,
                "flight": flight,
                "timestamp": timestamp,
                "status_code": status_code,
                "block": self._block,
            }
            self._status_info.append(info)
            logger.info("flight_status_info", **info)
        return tx_hash
