"""FlightSurety Oracle Server — FastAPI service (port 3000).

Startup registers the oracle identity pool with FlightSuretyApp, then a
background task answers every OracleRequest event for the duration of
the process.

Exposes:
  GET  /api                            → static API description
  GET  /health                         → liveness + oracle summary
  GET  /api/v1/oracles/indexes         → partition index → oracle addresses
  GET  /api/v1/oracles/stats           → dispatcher counters
  POST /api/v1/oracles/demo-request    → emit a synthetic OracleRequest (demo mode)
"""

from __future__ import annotations

import asyncio
import random
from contextlib import asynccontextmanager
from typing import List, Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config import Settings, get_settings
from shared.logging_config import configure_logging
from shared.models.oracle import RegistrationReport
from services.oracle_server.api.routes import init_router, router as oracle_router
from services.oracle_server.blockchain.demo_client import DemoFlightSuretyClient
from services.oracle_server.blockchain.flight_surety_client import FlightSuretyClient, load_abi
from services.oracle_server.blockchain.remote import FlightSuretyRemote
from services.oracle_server.dispatcher import EventDispatcher
from services.oracle_server.errors import StartupError
from services.oracle_server.event_stream import OracleRequestStream
from services.oracle_server.identity_pool import IdentityPool
from services.oracle_server.registration import RegistrationCoordinator
from services.oracle_server.registry import IndexRegistry

logger = structlog.get_logger(__name__)
settings = get_settings()

SERVICE_VERSION = "1.0.0"

# ── Globals ──────────────────────────────────────────────────────────────
_client: Optional[FlightSuretyRemote] = None
_registry: Optional[IndexRegistry] = None
_dispatcher: Optional[EventDispatcher] = None
_stream: Optional[OracleRequestStream] = None
_report: Optional[RegistrationReport] = None
_tasks: List[asyncio.Task] = []


def build_client(cfg: Settings) -> FlightSuretyRemote:
    """Real contract client when an address is configured, otherwise the demo simulation."""
    if cfg.DEMO_MODE or not cfg.FLIGHT_SURETY_APP_ADDRESS:
        return DemoFlightSuretyClient(
            account_count=max(40, cfg.ORACLE_ACCOUNT_OFFSET + cfg.ORACLE_COUNT),
            max_index=cfg.ORACLE_MAX_INDEX,
            latency_s=0.05,
        )
    return FlightSuretyClient(
        rpc_url=cfg.ETH_RPC_URL,
        contract_address=cfg.FLIGHT_SURETY_APP_ADDRESS,
        abi=load_abi(cfg.FLIGHT_SURETY_ARTIFACT_PATH),
        gas_limit=cfg.ORACLE_GAS_LIMIT,
        receipt_timeout_s=cfg.REMOTE_CALL_TIMEOUT_S,
    )


async def _demo_request_loop(client: DemoFlightSuretyClient, interval_s: float) -> None:
    """Periodically open a flight status request against the simulated contract."""
    accounts = await client.get_accounts()
    while True:
        await asyncio.sleep(interval_s)
        try:
            await client.fetch_flight_status(
                airline=accounts[1],
                flight=f"ND{random.randint(1000, 9999)}",
            )
        except Exception as exc:
            logger.error("demo_request_failed", error=str(exc) or type(exc).__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _client, _registry, _dispatcher, _stream, _report
    configure_logging(settings.LOG_LEVEL)
    logger.info("oracle_server_starting", port=settings.ORACLE_SERVER_PORT)

    # Raises RemoteUnavailableError: startup fails loudly
    _client = build_client(settings)
    await _client.connect()

    pool = await IdentityPool.load(
        _client,
        offset=settings.ORACLE_ACCOUNT_OFFSET,
        count=settings.ORACLE_COUNT,
    )
    _registry = IndexRegistry(max_index=settings.ORACLE_MAX_INDEX)
    coordinator = RegistrationCoordinator(
        _client,
        _registry,
        stake_wei=settings.ORACLE_STAKE_WEI,
        timeout_s=settings.REMOTE_CALL_TIMEOUT_S,
        concurrency=settings.ORACLE_REGISTRATION_CONCURRENCY,
    )
    _report = await coordinator.register_all(pool)
    if _report.registered == 0:
        await _client.close()
        raise StartupError(
            f"none of {_report.attempted} oracle identities could be registered"
        )

    _dispatcher = EventDispatcher(
        _client,
        _registry,
        timeout_s=settings.REMOTE_CALL_TIMEOUT_S,
    )
    _stream = OracleRequestStream(
        _client,
        from_block=settings.ORACLE_EVENTS_FROM_BLOCK,
        poll_interval_s=settings.ORACLE_POLL_INTERVAL_S,
        timeout_s=settings.REMOTE_CALL_TIMEOUT_S,
        max_backoff_s=settings.ORACLE_STREAM_MAX_BACKOFF_S,
    )
    _tasks.append(asyncio.create_task(_dispatcher.run(_stream.events()), name="oracle-dispatcher"))
    if _client.demo_mode and settings.DEMO_REQUEST_INTERVAL_S > 0:
        _tasks.append(
            asyncio.create_task(
                _demo_request_loop(_client, settings.DEMO_REQUEST_INTERVAL_S),
                name="oracle-demo-requests",
            )
        )

    init_router(_client, _registry, _dispatcher)

    logger.info(
        "oracle_server_ready",
        demo_mode=_client.demo_mode,
        oracles_registered=_report.registered,
        indices_covered=len(_registry.snapshot()),
    )
    yield

    for task in _tasks:
        task.cancel()
    await asyncio.gather(*_tasks, return_exceptions=True)
    _tasks.clear()
    await _client.close()
    logger.info("oracle_server_shutdown")


app = FastAPI(
    title="FlightSurety Oracle Server",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(oracle_router)


# ═══════════════════════════════════════════════════════════════════════
#  Endpoints
# ═══════════════════════════════════════════════════════════════════════

@app.get("/api")
async def api_root():
    return {"message": "An API for use with your Dapp!"}


@app.get("/health")
async def health():
    return {
        "service": "oracle_server",
        "version": SERVICE_VERSION,
        "status": "healthy" if _dispatcher is not None else "starting",
        "demo_mode": bool(_client and _client.demo_mode),
        "oracles_registered": len(_registry) if _registry is not None else 0,
        "registration": _report.summary() if _report else {},
        "next_block": _stream.next_block if _stream else None,
        "stream_errors": _stream.errors if _stream else 0,
        "dispatcher": _dispatcher.get_stats() if _dispatcher else {},
    }


# ═══════════════════════════════════════════════════════════════════════
#  Entry point
# ═══════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    uvicorn.run(
        "services.oracle_server.main:app",
        host=settings.SERVICE_HOST,
        port=settings.ORACLE_SERVER_PORT,
        reload=False,
    )
