"""Centralised configuration for the FlightSurety oracle server.

Loads values from environment variables (via ``python-dotenv``)
so the server and its tooling share the same config surface area.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings:
    """Simple settings object — reads from env vars with sensible defaults."""

    # ── Ledger / contract ────────────────────────────────────
    ETH_RPC_URL: str = os.getenv("ETH_RPC_URL", "http://localhost:8545")
    FLIGHT_SURETY_APP_ADDRESS: str = os.getenv("FLIGHT_SURETY_APP_ADDRESS", "")
    FLIGHT_SURETY_ARTIFACT_PATH: str = os.getenv(
        "FLIGHT_SURETY_ARTIFACT_PATH", "./build/contracts/FlightSuretyApp.json"
    )

    # ── Oracles ──────────────────────────────────────────────
    ORACLE_COUNT: int = int(os.getenv("ORACLE_COUNT", "25"))
    ORACLE_ACCOUNT_OFFSET: int = int(os.getenv("ORACLE_ACCOUNT_OFFSET", "4"))  # 0-3 are owner/airlines/passengers
    ORACLE_STAKE_WEI: int = int(os.getenv("ORACLE_STAKE_WEI", str(10**18)))  # 1 ether
    ORACLE_GAS_LIMIT: int = int(os.getenv("ORACLE_GAS_LIMIT", "6000000"))
    ORACLE_MAX_INDEX: int = int(os.getenv("ORACLE_MAX_INDEX", "9"))
    ORACLE_REGISTRATION_CONCURRENCY: int = int(os.getenv("ORACLE_REGISTRATION_CONCURRENCY", "1"))

    # ── Remote calls / event stream ──────────────────────────
    REMOTE_CALL_TIMEOUT_S: float = float(os.getenv("REMOTE_CALL_TIMEOUT_S", "30"))
    ORACLE_EVENTS_FROM_BLOCK: int = int(os.getenv("ORACLE_EVENTS_FROM_BLOCK", "0"))
    ORACLE_POLL_INTERVAL_S: float = float(os.getenv("ORACLE_POLL_INTERVAL_S", "1.0"))
    ORACLE_STREAM_MAX_BACKOFF_S: float = float(os.getenv("ORACLE_STREAM_MAX_BACKOFF_S", "30"))

    # ── Demo ─────────────────────────────────────────────────
    DEMO_MODE: bool = os.getenv("DEMO_MODE", "false").lower() in ("true", "1", "yes")
    DEMO_REQUEST_INTERVAL_S: float = float(os.getenv("DEMO_REQUEST_INTERVAL_S", "0"))

    # ── General ──────────────────────────────────────────────
    SERVICE_HOST: str = os.getenv("SERVICE_HOST", "0.0.0.0")
    ORACLE_SERVER_PORT: int = int(os.getenv("ORACLE_SERVER_PORT", "3000"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a singleton Settings instance."""
    return Settings()
