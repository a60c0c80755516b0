"""
Canonical models for the call intake pipeline.

Contacts and homeowners are owned by other subsystems and only read here.
Call records and claims are written by the pipeline.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Enums
# ============================================================================


class CallIntent(str, Enum):
    """Why the caller called, as reported by the voice assistant."""
    WARRANTY_ISSUE = "warranty_issue"
    GENERAL_QUESTION = "general_question"
    SOLICITATION = "solicitation"


class ClaimStatus(str, Enum):
    """Claim lifecycle status. Intake only ever writes SUBMITTED."""
    SUBMITTED = "submitted"
    REVIEWING = "reviewing"
    SCHEDULING = "scheduling"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CLOSED = "closed"


# Statuses that count as "still open" for duplicate detection
OPEN_CLAIM_STATUSES = (
    ClaimStatus.SUBMITTED,
    ClaimStatus.REVIEWING,
    ClaimStatus.SCHEDULING,
    ClaimStatus.SCHEDULED,
)


class NotificationScenario(str, Enum):
    """Outcome of one intake run, used to pick the notification template."""
    CLAIM_CREATED = "CLAIM_CREATED"
    MATCHED_NO_CLAIM = "MATCHED_NO_CLAIM"
    UNMATCHED = "UNMATCHED"


# ============================================================================
# Read-only reference data
# ============================================================================


class Contact(BaseModel):
    """An allowlisted phone number, synced from the owner's address book."""
    phone_number: str = Field(description="E.164 phone number, unique")
    owner_id: str
    display_name: Optional[str] = None


class Homeowner(BaseModel):
    """A homeowner record from the CRM."""
    id: str
    name: str
    address: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    last_active_at: Optional[datetime] = Field(
        default=None,
        description="Most recent activity; breaks ties between equally similar addresses",
    )


# ============================================================================
# Pipeline models
# ============================================================================


class ExtractedCallData(BaseModel):
    """Fields pulled out of an end-of-call payload."""
    external_call_id: Optional[str] = None
    message_type: Optional[str] = None
    property_address: Optional[str] = None
    homeowner_name: Optional[str] = None
    phone_number: Optional[str] = None
    issue_description: Optional[str] = None
    call_intent: Optional[str] = Field(
        default=None,
        description="Raw intent string from the vendor, before alias mapping",
    )
    is_urgent: bool = False
    transcript: Optional[str] = None
    recording_url: Optional[str] = None

    def missing_fields(self, required: tuple[str, ...] = ("property_address",)) -> list[str]:
        """Names of required fields that are still empty."""
        return [name for name in required if not getattr(self, name)]


class CallRecord(BaseModel):
    """One row per vendor call id."""
    external_call_id: str
    caller_phone: Optional[str] = None
    homeowner_name: Optional[str] = None
    property_address: Optional[str] = None
    issue_description: Optional[str] = None
    call_intent: Optional[CallIntent] = None
    extracted_fields: dict[str, Any] = Field(default_factory=dict)
    homeowner_id: Optional[str] = None
    similarity: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    is_verified: bool = False
    is_urgent: bool = False
    transcript: Optional[str] = None
    recording_url: Optional[str] = None
    claim_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Claim(BaseModel):
    """A warranty claim opened from a phone call."""
    id: str
    homeowner_id: str
    claim_number: int = Field(gt=0, description="Sequential within one homeowner")
    status: ClaimStatus = ClaimStatus.SUBMITTED
    classification: str = "unclassified"
    title: str = "Call in"
    description: Optional[str] = None
    source_call_id: Optional[str] = None
    is_urgent: bool = False
    created_at: datetime
