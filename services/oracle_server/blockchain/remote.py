"""Operations the oracle server consumes from FlightSuretyApp.

Both ``FlightSuretyClient`` (a real node via web3) and
``DemoFlightSuretyClient`` (in-memory simulation) satisfy this protocol.
"""

from __future__ import annotations

from typing import List, Protocol

from shared.models.oracle import OracleRequestEvent


class FlightSuretyRemote(Protocol):
    demo_mode: bool

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def get_accounts(self) -> List[str]: ...

    async def get_block_number(self) -> int: ...

    async def register_oracle(self, address: str, stake_wei: int) -> str:
        """Send ``registerOracle`` and wait for the receipt.  Returns tx hash."""
        ...

    async def get_my_indexes(self, address: str) -> List[int]: ...

    async def submit_oracle_response(
        self,
        address: str,
        index: int,
        airline: str,
        flight: str,
        timestamp: int,
        status_code: int,
    ) -> str:
        """Send ``submitOracleResponse`` and wait for the receipt.  Returns tx hash."""
        ...

    async def get_oracle_requests(self, from_block: int, to_block: int) -> List[OracleRequestEvent]: ...
