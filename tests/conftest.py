"""
FlightSurety Oracle Server - pytest Configuration

Shared fixtures and an in-memory fake of the FlightSuretyApp surface.
"""

import asyncio
from typing import Dict, List, Optional, Set, Tuple

import pytest

from shared.models.oracle import Identity, OracleRequestEvent
from services.oracle_server.errors import RemoteCallError


def make_address(i: int) -> str:
    return "0x" + f"{i:040x}"


# =============================================================================
# FAKE REMOTE
# =============================================================================

class FakeFlightSurety:
    """Scriptable FlightSuretyApp fake.

    Indices are assigned from ``indices`` (address → list); unlisted
    addresses get ``[ordinal % 10, (ordinal + 1) % 10, (ordinal + 2) % 10]``.
    Addresses in ``fail_*`` sets raise ``RemoteCallError``; addresses in
    ``hang_*`` sets never return.
    """

    demo_mode = False

    def __init__(self, account_count: int = 40):
        self.accounts = [make_address(i) for i in range(account_count)]
        self.indices: Dict[str, List[int]] = {}
        self.fail_register: Set[str] = set()
        self.hang_register: Set[str] = set()
        self.fail_indexes: Set[str] = set()
        self.fail_submit: Set[str] = set()
        self.hang_submit: Set[str] = set()
        self.submit_delay: Dict[str, float] = {}
        self.registered: Set[str] = set()
        self.submissions: List[Tuple[str, int, str, str, int, int]] = []
        self.call_log: List[Tuple[str, str]] = []
        self.events: List[OracleRequestEvent] = []
        self.stream_failures = 0
        self.closed = False

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        self.closed = True

    async def get_accounts(self) -> List[str]:
        return list(self.accounts)

    async def get_block_number(self) -> int:
        if self.stream_failures > 0:
            self.stream_failures -= 1
            raise ConnectionError("node went away")
        return len(self.events)

    async def get_oracle_requests(self, from_block: int, to_block: int) -> List[OracleRequestEvent]:
        return [e for e in self.events if from_block <= (e.block_number or 0) <= to_block]

    def emit(self, index: int, airline: str = "0xairline", flight: str = "ND1309", timestamp: int = 1700000000) -> OracleRequestEvent:
        event = OracleRequestEvent(
            index=index,
            airline=airline,
            flight=flight,
            timestamp=timestamp,
            correlation_id=f"evt-{len(self.events) + 1}",
            block_number=len(self.events) + 1,
        )
        self.events.append(event)
        return event

    async def register_oracle(self, address: str, stake_wei: int) -> str:
        self.call_log.append(("register", address))
        await asyncio.sleep(0)
        if address in self.hang_register:
            await asyncio.sleep(3600)
        if address in self.fail_register:
            raise RemoteCallError("registerOracle", "Registration fee is required")
        self.registered.add(address)
        self.call_log.append(("confirmed", address))
        return "0x" + address[-8:]

    async def get_my_indexes(self, address: str) -> List[int]:
        self.call_log.append(("indexes", address))
        await asyncio.sleep(0)
        if address not in self.registered:
            raise RemoteCallError("getMyIndexes", "Not registered as an oracle")
        if address in self.fail_indexes:
            raise RemoteCallError("getMyIndexes", "node error")
        if address in self.indices:
            return list(self.indices[address])
        ordinal = self.accounts.index(address)
        return [ordinal % 10, (ordinal + 1) % 10, (ordinal + 2) % 10]

    async def submit_oracle_response(
        self,
        address: str,
        index: int,
        airline: str,
        flight: str,
        timestamp: int,
        status_code: int,
    ) -> str:
        if address in self.submit_delay:
            await asyncio.sleep(self.submit_delay[address])
        if address in self.hang_submit:
            await asyncio.sleep(3600)
        if address in self.fail_submit:
            raise RemoteCallError("submitOracleResponse", "Flight or timestamp do not match oracle request")
        self.submissions.append((address, index, airline, flight, timestamp, status_code))
        return "0xresponse"


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fake_remote() -> FakeFlightSurety:
    return FakeFlightSurety()


@pytest.fixture
def identities() -> List[Identity]:
    return [Identity(address=make_address(i), ordinal=i) for i in range(4, 29)]


@pytest.fixture
def sample_event() -> OracleRequestEvent:
    return OracleRequestEvent(
        index=4,
        airline="0x00000000000000000000000000000000000000a1",
        flight="ND1309",
        timestamp=1700000000,
        correlation_id="evt-sample",
    )
