"""IdentityPool — the slice of node accounts reserved for oracles."""

from __future__ import annotations

from typing import Iterator, List, Sequence, Tuple

import structlog

from shared.models.oracle import Identity
from services.oracle_server.blockchain.remote import FlightSuretyRemote

logger = structlog.get_logger(__name__)


class IdentityPool:
    """Fixed, ordered set of oracle signer identities.

    ``accounts[offset : offset + count]`` become oracles; each keeps its
    absolute position in *accounts* as its ordinal.  When the node exposes
    fewer accounts than requested the pool is truncated with a warning.
    """

    def __init__(self, accounts: Sequence[str], offset: int = 4, count: int = 25):
        if offset < 0 or count < 0:
            raise ValueError("offset and count must be non-negative")
        self.offset = offset
        self.requested = count
        selected = list(accounts)[offset:offset + count]
        self._identities: Tuple[Identity, ...] = tuple(
            Identity(address=address, ordinal=offset + i)
            for i, address in enumerate(selected)
        )
        if len(self._identities) < count:
            logger.warning(
                "identity_pool_truncated",
                requested=count,
                available=len(self._identities),
                offset=offset,
                accounts_total=len(accounts),
            )
        else:
            logger.info("identity_pool_loaded", size=len(self._identities), offset=offset)

    @classmethod
    async def load(cls, client: FlightSuretyRemote, offset: int = 4, count: int = 25) -> "IdentityPool":
        """Build the pool from the node's account list."""
        accounts: List[str] = await client.get_accounts()
        return cls(accounts, offset=offset, count=count)

    @property
    def identities(self) -> Tuple[Identity, ...]:
        return self._identities

    def __iter__(self) -> Iterator[Identity]:
        return iter(self._identities)

    def __len__(self) -> int:
        return len(self._identities)
