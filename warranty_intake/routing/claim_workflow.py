"""
Warranty claim creation from intake calls.

Runs after the address resolver found the caller's homeowner record:
- Only warranty issues open claims
- A repeat call inside the dedup window is treated as the same issue
- Claim numbers are sequential per homeowner and allocated by the store

The duplicate check and the numbering happen inside one store transaction,
so concurrent deliveries for the same homeowner cannot both create a claim.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..intake.schema import CallIntent, Claim, ExtractedCallData
from ..storage.call_store import CallStore

logger = logging.getLogger(__name__)

DEFAULT_DEDUP_WINDOW = timedelta(hours=24)

CLAIM_TITLE = "Call in"
DEFAULT_CLAIM_DESCRIPTION = "Warranty issue reported by phone. See call record for details."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_claim_description(extracted: ExtractedCallData) -> str:
    """Claim description from what the caller said."""
    description = extracted.issue_description or DEFAULT_CLAIM_DESCRIPTION
    if extracted.homeowner_name:
        description = f"{description}\n\nReported by: {extracted.homeowner_name}"
    return description


class ClaimCreator:
    """
    Decide whether a resolved call opens a claim, and open it.

    Usage:
        creator = ClaimCreator(store)
        claim = creator.maybe_create("ho-1", extracted, CallIntent.WARRANTY_ISSUE)
    """

    def __init__(
        self,
        store: CallStore,
        dedup_window: timedelta = DEFAULT_DEDUP_WINDOW,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.dedup_window = dedup_window
        self.clock = clock or _utcnow

    def maybe_create(
        self,
        homeowner_id: str,
        extracted: ExtractedCallData,
        intent: CallIntent,
    ) -> Optional[Claim]:
        """
        Create a claim unless the call is not a warranty issue or a recent
        open claim already covers it.

        Returns:
            The new Claim, or None if nothing was created

        Raises:
            StoreError: if the store transaction fails
        """
        if intent != CallIntent.WARRANTY_ISSUE:
            logger.info(f"Intent is {intent.value}, no claim for homeowner {homeowner_id}")
            return None

        now = self.clock()
        claim = self.store.create_claim(
            homeowner_id,
            title=CLAIM_TITLE,
            description=build_claim_description(extracted),
            source_call_id=extracted.external_call_id,
            is_urgent=extracted.is_urgent,
            created_at=now,
            dedup_since=now - self.dedup_window,
        )

        if claim is None:
            logger.info(
                f"Skipping claim for homeowner {homeowner_id}: open claim within "
                f"{self.dedup_window}"
            )
            return None

        logger.info(f"✅ Created claim #{claim.claim_number} ({claim.id}) for homeowner {homeowner_id}")
        return claim
