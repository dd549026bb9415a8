"""Registration coordinator — one-time oracle onboarding at startup.

For each identity in the pool:

1. ``registerOracle`` with the stake attached, waiting for the receipt;
2. strictly afterwards, ``getMyIndexes`` for that identity;
3. record the identity under every returned index.

A failure at any step is logged and only costs that identity; the run
always continues through the whole pool.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List

import structlog

from shared.models.oracle import Identity, RegistrationReport, RegistrationResult
from services.oracle_server.blockchain.remote import FlightSuretyRemote
from services.oracle_server.errors import RegistryInvariantError
from services.oracle_server.identity_pool import IdentityPool
from services.oracle_server.registry import IndexRegistry
from services.oracle_server.remote_call import call_remote

logger = structlog.get_logger(__name__)


class RegistrationCoordinator:
    """Drive every identity in an ``IdentityPool`` through registration.

    Parameters
    ----------
    client:
        FlightSuretyApp client (real or demo).
    registry:
        Registry populated with the assigned indices.
    stake_wei:
        Value attached to ``registerOracle``.
    timeout_s:
        Bound on each remote call.
    concurrency:
        Identities registered at once.  ``1`` keeps strict pool order.
    """

    def __init__(
        self,
        client: FlightSuretyRemote,
        registry: IndexRegistry,
        stake_wei: int,
        timeout_s: float = 30.0,
        concurrency: int = 1,
    ):
        self.client = client
        self.registry = registry
        self.stake_wei = stake_wei
        self.timeout_s = timeout_s
        self.concurrency = max(1, concurrency)

    async def register_one(self, identity: Identity) -> RegistrationResult:
        """Register a single identity and record its indices."""
        registered = await call_remote(
            "register_oracle",
            lambda: self.client.register_oracle(identity.address, self.stake_wei),
            identity=identity,
            timeout_s=self.timeout_s,
        )
        logger.info(
            "oracle_registration",
            account=identity.label,
            ok=registered.ok,
            tx_hash=registered.result,
            error=registered.error,
        )
        if not registered.ok:
            return RegistrationResult(identity=identity, error=registered.error)

        queried = await call_remote(
            "get_my_indexes",
            lambda: self.client.get_my_indexes(identity.address),
            identity=identity,
            timeout_s=self.timeout_s,
        )
        if not queried.ok:
            return RegistrationResult(identity=identity, registered=True, error=queried.error)

        try:
            indices = self.registry.record(identity, queried.result)
        except (RegistryInvariantError, ValueError) as exc:
            logger.error("oracle_indices_rejected", account=identity.label, error=str(exc))
            return RegistrationResult(identity=identity, registered=True, error=str(exc))

        return RegistrationResult(identity=identity, registered=True, indices=list(indices))

    async def register_all(self, pool: IdentityPool) -> RegistrationReport:
        """Register every identity in *pool*; results come back in pool order."""
        report = RegistrationReport()
        logger.info(
            "oracle_registration_started",
            identities=len(pool),
            concurrency=self.concurrency,
            stake_wei=self.stake_wei,
        )

        if self.concurrency == 1:
            results: List[RegistrationResult] = []
            for identity in pool:
                results.append(await self.register_one(identity))
        else:
            semaphore = asyncio.Semaphore(self.concurrency)

            async def _bounded(identity: Identity) -> RegistrationResult:
                async with semaphore:
                    return await self.register_one(identity)

            results = list(await asyncio.gather(*(_bounded(i) for i in pool)))

        report.results = results
        report.finished_at = datetime.now(timezone.utc)
        logger.info("oracle_registration_finished", **report.summary())
        return report
