"""
Demo contract simulation tests, including a full register → request →
consensus run through the coordinator and dispatcher.
"""

import random

import pytest

from services.oracle_server.blockchain.demo_client import (
    MIN_RESPONSES,
    REGISTRATION_FEE_WEI,
    DemoFlightSuretyClient,
)
from services.oracle_server.dispatcher import EventDispatcher
from services.oracle_server.errors import RemoteCallError
from services.oracle_server.event_stream import OracleRequestStream
from services.oracle_server.identity_pool import IdentityPool
from services.oracle_server.registration import RegistrationCoordinator
from services.oracle_server.registry import IndexRegistry


@pytest.fixture
def demo():
    return DemoFlightSuretyClient(account_count=40, seed=42)


class TestDemoRegistration:

    @pytest.mark.asyncio
    async def test_three_distinct_indices_in_range(self, demo):
        accounts = await demo.get_accounts()
        await demo.register_oracle(accounts[4], REGISTRATION_FEE_WEI)

        indexes = await demo.get_my_indexes(accounts[4])

        assert len(indexes) == 3
        assert len(set(indexes)) == 3
        assert all(0 <= i <= 9 for i in indexes)

    @pytest.mark.asyncio
    async def test_fee_required(self, demo):
        accounts = await demo.get_accounts()
        with pytest.raises(RemoteCallError, match="fee"):
            await demo.register_oracle(accounts[4], REGISTRATION_FEE_WEI - 1)

    @pytest.mark.asyncio
    async def test_double_registration_rejected(self, demo):
        accounts = await demo.get_accounts()
        await demo.register_oracle(accounts[4], REGISTRATION_FEE_WEI)
        with pytest.raises(RemoteCallError, match="already registered"):
            await demo.register_oracle(accounts[4], REGISTRATION_FEE_WEI)

    @pytest.mark.asyncio
    async def test_indexes_require_registration(self, demo):
        accounts = await demo.get_accounts()
        with pytest.raises(RemoteCallError):
            await demo.get_my_indexes(accounts[5])


class TestDemoResponses:

    @pytest.mark.asyncio
    async def test_wrong_index_rejected(self, demo):
        accounts = await demo.get_accounts()
        await demo.register_oracle(accounts[4], REGISTRATION_FEE_WEI)
        held = set(await demo.get_my_indexes(accounts[4]))
        event = await demo.fetch_flight_status(accounts[1], "ND1309", 1700000000)
        missing = next(i for i in range(10) if i not in held)

        with pytest.raises(RemoteCallError):
            await demo.submit_oracle_response(
                accounts[4], missing, event.airline, event.flight, event.timestamp, 10
            )

    @pytest.mark.asyncio
    async def test_request_closes_after_agreement(self):
        # three indices in [0, 2]: every oracle holds every index
        demo = DemoFlightSuretyClient(account_count=40, seed=3, max_index=2)
        accounts = await demo.get_accounts()
        oracles = accounts[4:4 + MIN_RESPONSES + 1]
        for address in oracles:
            await demo.register_oracle(address, REGISTRATION_FEE_WEI)
        event = await demo.fetch_flight_status(accounts[1], "ND1309", 1700000000)

        for address in oracles[:MIN_RESPONSES]:
            await demo.submit_oracle_response(
                address, event.index, event.airline, event.flight, event.timestamp, 20
            )

        info = demo.get_flight_status_info()
        assert info and info[0]["status_code"] == 20
        with pytest.raises(RemoteCallError):
            await demo.submit_oracle_response(
                oracles[-1], event.index, event.airline, event.flight, event.timestamp, 20
            )

    @pytest.mark.asyncio
    async def test_events_visible_by_block_range(self, demo):
        accounts = await demo.get_accounts()
        before = await demo.get_block_number()
        event = await demo.fetch_flight_status(accounts[1], "UA2402", 1700000000)

        found = await demo.get_oracle_requests(before + 1, await demo.get_block_number())

        assert found == [event]


class TestEndToEnd:
    """Register 25 oracles on the simulation and answer a burst of requests."""

    @pytest.mark.asyncio
    async def test_every_request_answered_by_its_index_holders(self, demo):
        pool = await IdentityPool.load(demo, offset=4, count=25)
        registry = IndexRegistry()
        report = await RegistrationCoordinator(
            demo, registry, stake_wei=REGISTRATION_FEE_WEI, timeout_s=1.0
        ).register_all(pool)
        assert report.registered == 25

        start = await demo.get_block_number() + 1
        accounts = await demo.get_accounts()
        for n in range(5):
            await demo.fetch_flight_status(accounts[1], f"ND{n}", 1700000000 + n)

        stream = OracleRequestStream(demo, from_block=start, poll_interval_s=0.01)
        dispatcher = EventDispatcher(demo, registry, timeout_s=1.0, rng=random.Random(5))
        batch, _ = await stream.poll_once()
        results = [await dispatcher.handle_event(e) for e in batch]

        assert len(results) == 5
        for result in results:
            holders = registry.matching(result.event.index)
            assert [s.identity for s in result.submissions] == holders
        # late votes after a request closes are rejected, never raised
        stats = dispatcher.get_stats()
        assert stats["submitted"] + stats["rejected"] == sum(len(r.submissions) for r in results)
