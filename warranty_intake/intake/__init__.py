"""
Call intake module.

Turns Vapi end-of-call payloads into call records for homeowner resolution.
"""

from .extractor import (
    extract_call_data,
    is_final_event,
    merge_missing,
    resolve_intent,
)
from .schema import (
    # Enums
    CallIntent,
    ClaimStatus,
    NotificationScenario,
    OPEN_CLAIM_STATUSES,
    # Models
    Contact,
    Homeowner,
    ExtractedCallData,
    CallRecord,
    Claim,
)
from .vapi_client import VapiClient

__all__ = [
    # Extraction
    "extract_call_data",
    "is_final_event",
    "merge_missing",
    "resolve_intent",
    "VapiClient",
    # Enums
    "CallIntent",
    "ClaimStatus",
    "NotificationScenario",
    "OPEN_CLAIM_STATUSES",
    # Models
    "Contact",
    "Homeowner",
    "ExtractedCallData",
    "CallRecord",
    "Claim",
]
