"""FlightSuretyClient — async web3 client for the FlightSuretyApp contract.

Talks JSON-RPC to a Ganache / Hardhat node whose unlocked accounts act
as oracle signers.  Every state-changing call waits for its receipt so
callers only see a result once the transaction is mined.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted, Web3Exception

from shared.models.oracle import OracleRequestEvent
from services.oracle_server.errors import RemoteCallError, RemoteUnavailableError

logger = structlog.get_logger(__name__)

# Subset of the FlightSuretyApp ABI used when no truffle artifact is present.
FLIGHT_SURETY_ORACLE_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "registerOracle",
        "inputs": [],
        "outputs": [],
        "stateMutability": "payable",
    },
    {
        "type": "function",
        "name": "getMyIndexes",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8[3]"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "submitOracleResponse",
        "inputs": [
            {"name": "index", "type": "uint8"},
            {"name": "airline", "type": "address"},
            {"name": "flight", "type": "string"},
            {"name": "timestamp", "type": "uint256"},
            {"name": "statusCode", "type": "uint8"},
        ],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
    {
        "type": "event",
        "name": "OracleRequest",
        "anonymous": False,
        "inputs": [
            {"name": "index", "type": "uint8", "indexed": False},
            {"name": "airline", "type": "address", "indexed": False},
            {"name": "flight", "type": "string", "indexed": False},
            {"name": "timestamp", "type": "uint256", "indexed": False},
        ],
    },
]


def load_abi(artifact_path: Optional[str]) -> List[Dict[str, Any]]:
    """Read the ABI from a truffle build artifact, falling back to the built-in subset."""
    if artifact_path:
        p = Path(artifact_path)
        if p.exists():
            with open(p, "r", encoding="utf-8") as fh:
                artifact = json.load(fh)
            logger.info("flight_surety_abi_loaded", path=str(p))
            return artifact["abi"]
        logger.warning("flight_surety_artifact_missing", path=artifact_path)
    return FLIGHT_SURETY_ORACLE_ABI


class FlightSuretyClient:
    """Async wrapper around a deployed FlightSuretyApp contract.

    Parameters
    ----------
    rpc_url:
        JSON-RPC endpoint, e.g. ``http://localhost:8545``.
    contract_address:
        Deployed ``FlightSuretyApp`` address.
    abi:
        Contract ABI; see ``load_abi``.
    gas_limit:
        Gas attached to every transaction.
    receipt_timeout_s:
        How long to wait for a transaction to be mined.
    """

    demo_mode = False

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        abi: Optional[List[Dict[str, Any]]] = None,
        gas_limit: int = 6_000_000,
        receipt_timeout_s: float = 30.0,
    ):
        self.rpc_url = rpc_url
        self.contract_address = AsyncWeb3.to_checksum_address(contract_address)
        self.gas_limit = gas_limit
        self.receipt_timeout_s = receipt_timeout_s
        self._w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self._contract = self._w3.eth.contract(
            address=self.contract_address,
            abi=abi or FLIGHT_SURETY_ORACLE_ABI,
        )
        self._connected = False

    # ── Connection ───────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Check the node is reachable and the contract is deployed."""
        try:
            connected = await self._w3.is_connected()
        except (OSError, Web3Exception) as exc:
            raise RemoteUnavailableError(f"cannot reach {self.rpc_url}: {exc}") from exc
        if not connected:
            raise RemoteUnavailableError(f"cannot reach {self.rpc_url}")

        code = await self._w3.eth.get_code(self.contract_address)
        if not code:
            raise RemoteUnavailableError(
                f"no contract deployed at {self.contract_address}"
            )

        self._connected = True
        logger.info(
            "flight_surety_connected",
            rpc_url=self.rpc_url,
            contract=self.contract_address,
            block=await self._w3.eth.block_number,
        )

    async def close(self) -> None:
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
        self._connected = False
        logger.info("flight_surety_disconnected")

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ── Chain reads ──────────────────────────────────────────────────────

    async def get_accounts(self) -> List[str]:
        return list(await self._w3.eth.accounts)

    async def get_block_number(self) -> int:
        return await self._w3.eth.block_number

    async def get_my_indexes(self, address: str) -> List[int]:
        try:
            indexes = await self._contract.functions.getMyIndexes().call({"from": address})
        except Web3Exception as exc:
            raise RemoteCallError("getMyIndexes", str(exc)) from exc
        return [int(i) for i in indexes]

    async def get_oracle_requests(self, from_block: int, to_block: int) -> List[OracleRequestEvent]:
        logs = await self._contract.events.OracleRequest().get_logs(
            from_block=from_block,
            to_block=to_block,
        )
        events = []
        for log in logs:
            args = log["args"]
            tx_hex = AsyncWeb3.to_hex(log["transactionHash"])
            events.append(
                OracleRequestEvent(
                    index=int(args["index"]),
                    airline=args["airline"],
                    flight=args["flight"],
                    timestamp=int(args["timestamp"]),
                    correlation_id=f"{tx_hex[:12]}:{log['logIndex']}",
                    block_number=log["blockNumber"],
                )
            )
        return events

    # ── Transactions ─────────────────────────────────────────────────────

    async def register_oracle(self, address: str, stake_wei: int) -> str:
        return await self._transact(
            "registerOracle",
            self._contract.functions.registerOracle(),
            {"from": address, "value": stake_wei, "gas": self.gas_limit},
        )

    async def submit_oracle_response(
        self,
        address: str,
        index: int,
        airline: str,
        flight: str,
        timestamp: int,
        status_code: int,
    ) -> str:
        fn = self._contract.functions.submitOracleResponse(
            index,
            AsyncWeb3.to_checksum_address(airline),
            flight,
            timestamp,
            status_code,
        )
        return await self._transact(
            "submitOracleResponse",
            fn,
            {"from": address, "gas": self.gas_limit},
        )

    async def _transact(self, name: str, fn: Any, tx: Dict[str, Any]) -> str:
        """Send a transaction and block until it is mined successfully."""
        try:
            tx_hash = await fn.transact(tx)
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout_s
            )
        except TimeExhausted as exc:
            raise RemoteCallError(name, "receipt not available before timeout") from exc
        except Web3Exception as exc:
            raise RemoteCallError(name, str(exc)) from exc

        tx_hex = AsyncWeb3.to_hex(tx_hash)
        if receipt["status"] != 1:
            raise RemoteCallError(name, f"transaction {tx_hex} reverted")
        logger.debug("tx_mined", method=name, tx_hash=tx_hex, block=receipt["blockNumber"])
        return tx_hex
