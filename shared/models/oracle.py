"""Shared Pydantic models for the FlightSurety oracle server.

Covers:
  - Signer identities reserved for oracle simulation
  - OracleRequest events emitted by FlightSuretyApp
  - Oracle responses and the outcome of every remote call
  - Registration reporting
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


# ══════════════════════════════════════════════════════════════════════════
# Flight status domain
# ══════════════════════════════════════════════════════════════════════════

class StatusCode(IntEnum):
    """Flight status codes understood by FlightSuretyApp."""
    UNKNOWN = 0
    ON_TIME = 10
    LATE_AIRLINE = 20
    LATE_WEATHER = 30
    LATE_TECHNICAL = 40
    LATE_OTHER = 50


STATUS_CODES: tuple[StatusCode, ...] = tuple(StatusCode)


# ══════════════════════════════════════════════════════════════════════════
# Identities & events
# ══════════════════════════════════════════════════════════════════════════

class Identity(BaseModel):
    """An oracle signer: account address plus its slot in the node's account list."""
    model_config = ConfigDict(frozen=True)

    address: str
    ordinal: int = Field(ge=0)

    @property
    def label(self) -> str:
        return f"account[{self.ordinal}]"


class OracleRequestEvent(BaseModel):
    """``OracleRequest(index, airline, flight, timestamp)`` as seen on the event stream."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    airline: str
    flight: str
    timestamp: int
    correlation_id: str = Field(default_factory=lambda: uuid4().hex[:12])
    block_number: Optional[int] = None

    @property
    def subject_key(self) -> str:
        return f"{self.airline}:{self.flight}"


class ResponseSubmission(BaseModel):
    """One oracle's answer to an OracleRequest."""
    identity: Identity
    index: int = Field(ge=0)
    airline: str
    flight: str
    timestamp: int
    status_code: StatusCode
    correlation_id: str = ""

    @property
    def subject_key(self) -> str:
        return f"{self.airline}:{self.flight}"


# ══════════════════════════════════════════════════════════════════════════
# Remote call outcomes
# ══════════════════════════════════════════════════════════════════════════

class CallStatus(str, Enum):
    """Classification of a single remote call."""
    SUCCESS = "success"
    RECOVERABLE_FAILURE = "recoverable_failure"


class CallOutcome(BaseModel):
    """Result of one bounded, retry-free call against the contract."""
    operation: str
    status: CallStatus
    address: str
    ordinal: int
    result: Any = None
    error: Optional[str] = None
    timed_out: bool = False
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is CallStatus.SUCCESS


class RegistrationResult(BaseModel):
    """Per-identity outcome of the registration handshake."""
    identity: Identity
    registered: bool = False
    indices: List[int] = Field(default_factory=list)
    error: Optional[str] = None


class RegistrationReport(BaseModel):
    """Summary of one registration run over the identity pool."""
    results: List[RegistrationResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def attempted(self) -> int:
        return len(self.results)

    @property
    def registered(self) -> int:
        """Identities that completed registration *and* received indices."""
        return sum(1 for r in self.results if r.registered and r.indices)

    @property
    def failed(self) -> List[RegistrationResult]:
        return [r for r in self.results if not (r.registered and r.indices)]

    def summary(self) -> Dict[str, Any]:
        return {
            "attempted": self.attempted,
            "registered": self.registered,
            "failed": len(self.failed),
            "failed_accounts": [r.identity.label for r in self.failed],
        }


class DispatchResult(BaseModel):
    """Submissions produced for a single OracleRequest event."""
    event: OracleRequestEvent
    submissions: List[ResponseSubmission] = Field(default_factory=list)
    outcomes: List[CallOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.succeeded
