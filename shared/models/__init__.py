# FlightSurety oracle server — shared models package

from shared.models.oracle import (
    STATUS_CODES,
    CallOutcome,
    CallStatus,
    DispatchResult,
    Identity,
    OracleRequestEvent,
    RegistrationReport,
    RegistrationResult,
    ResponseSubmission,
    StatusCode,
)

__all__ = [
    "STATUS_CODES",
    "CallOutcome",
    "CallStatus",
    "DispatchResult",
    "Identity",
    "OracleRequestEvent",
    "RegistrationReport",
    "RegistrationResult",
    "ResponseSubmission",
    "StatusCode",
]
