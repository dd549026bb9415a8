"""Oracle inspection and demo API routes.

Mounted by ``main.py`` via ``app.include_router(oracle_router)``.
The ``init_router`` function wires the client, registry and dispatcher
created during the lifespan.
"""

from __future__ import annotations

import random
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from shared.models.oracle import OracleRequestEvent

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/oracles", tags=["flight-surety-oracles"])

# Wired at startup via init_router()
_client = None
_registry = None
_dispatcher = None

_DEMO_FLIGHTS = ["ND1309", "UA2402", "LH0455", "BA0117", "AF0084"]


class DemoRequest(BaseModel):
    airline: Optional[str] = Field(default=None, description="Airline address; defaults to account[1]")
    flight: Optional[str] = None
    timestamp: Optional[int] = None


def init_router(client, registry, dispatcher) -> None:  # noqa: ANN001
    """Wire singletons created during lifespan into the router."""
    global _client, _registry, _dispatcher
    _client = client
    _registry = registry
    _dispatcher = dispatcher
    logger.info("oracle_routes_initialised")


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/indexes")
def list_indexes() -> Dict[int, List[str]]:
    """Registry snapshot: partition index → oracle addresses."""
    if _registry is None:
        raise HTTPException(503, "Registry not ready")
    return _registry.snapshot()


@router.get("/stats")
def dispatcher_stats() -> Dict[str, Any]:
    """Counters kept by the event dispatcher."""
    if _dispatcher is None:
        raise HTTPException(503, "Dispatcher not ready")
    return _dispatcher.get_stats()


@router.post("/demo-request", response_model=OracleRequestEvent)
async def demo_request(req: DemoRequest):
    """Ask the simulated contract to emit an OracleRequest."""
    if _client is None:
        raise HTTPException(503, "Contract client not ready")
    if not _client.demo_mode:
        raise HTTPException(409, "Demo requests are only available in demo mode")

    airline = req.airline
    if airline is None:
        accounts = await _client.get_accounts()
        airline = accounts[1]
    event = await _client.fetch_flight_status(
        airline=airline,
        flight=req.flight or random.choice(_DEMO_FLIGHTS),
        timestamp=req.timestamp,
    )
    logger.info("demo_request_triggered", correlation_id=event.correlation_id, index=event.index)
    return event
