"""
End-of-call webhook ingestion.

One pipeline per call, strictly in order:
    extract -> (fallback fetch) -> resolve address -> upsert call record
    -> create claim -> notify

The vendor retries any delivery that does not get a 200, so apart from a bad
credential nothing here propagates: every failure is logged and turned into
an IngestResult. Re-delivery of the same call id is safe at every step.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Awaitable, Callable, Mapping, Optional

from ..errors import MalformedPayload, UpstreamFetchError
from ..matching.address import AddressMatch, HomeownerMatcher
from ..notifications.dispatcher import (
    NotificationDispatcher,
    NotificationEvent,
    create_dispatcher,
    dispatch_safely,
)
from ..routing.claim_workflow import ClaimCreator
from ..security import verify_vapi_secret
from ..storage.call_store import CallStore
from ..utils.config import Settings, get_settings
from ..utils.phone import normalize_phone_number
from .extractor import extract_call_data, is_final_event, merge_missing, resolve_intent
from .schema import CallIntent, CallRecord, Claim, ExtractedCallData, NotificationScenario
from .vapi_client import VapiClient

logger = logging.getLogger(__name__)


class IngestStatus:
    """Outcome labels for one delivery."""
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    IGNORED = "ignored"
    ERROR = "error"


@dataclass
class IngestResult:
    """Result of ingesting one webhook delivery."""
    status: str
    external_call_id: Optional[str] = None
    call_intent: Optional[CallIntent] = None
    scenario: Optional[NotificationScenario] = None
    homeowner_id: Optional[str] = None
    similarity: Optional[float] = None
    claim: Optional[Claim] = None
    fallback_fetched: bool = False
    notified: bool = False
    missing_fields: list[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "status": self.status,
            "external_call_id": self.external_call_id,
            "call_intent": self.call_intent.value if self.call_intent else None,
            "scenario": self.scenario.value if self.scenario else None,
            "homeowner_id": self.homeowner_id,
            "similarity": self.similarity,
            "claim_id": self.claim.id if self.claim else None,
            "claim_number": self.claim.claim_number if self.claim else None,
            "fallback_fetched": self.fallback_fetched,
            "notified": self.notified,
            "missing_fields": self.missing_fields,
            "message": self.message,
        }


class WebhookIngestor:
    """
    Process Vapi end-of-call reports into call records and claims.

    Usage:
        ingestor = WebhookIngestor(store, matcher, creator, dispatcher, client)
        result = await ingestor.ingest(payload, request.headers)
    """

    def __init__(
        self,
        store: CallStore,
        matcher: HomeownerMatcher,
        claim_creator: ClaimCreator,
        dispatcher: NotificationDispatcher,
        vendor_client: VapiClient,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store = store
        self.matcher = matcher
        self.claim_creator = claim_creator
        self.dispatcher = dispatcher
        self.vendor_client = vendor_client
        self.settings = settings or get_settings()
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        store: CallStore,
        settings: Optional[Settings] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ) -> "WebhookIngestor":
        """Wire the pipeline from configuration."""
        settings = settings or get_settings()
        return cls(
            store=store,
            matcher=HomeownerMatcher(
                store,
                threshold=settings.address_match_threshold,
                prefilter_enabled=settings.address_prefilter_enabled,
            ),
            claim_creator=ClaimCreator(
                store,
                dedup_window=timedelta(hours=settings.claim_dedup_window_hours),
            ),
            dispatcher=dispatcher or create_dispatcher(settings),
            vendor_client=VapiClient(
                settings.vapi_call_api_key,
                base_url=settings.vapi_api_base_url,
                timeout=settings.fallback_fetch_timeout_seconds,
            ),
            settings=settings,
        )

    def authenticate(self, headers: Mapping[str, str]) -> None:
        """
        Raises:
            AuthError: unless the x-vapi-secret header carries the secret
        """
        verify_vapi_secret(headers, self.settings.vapi_secret)

    async def ingest(self, payload: Any, headers: Mapping[str, str]) -> IngestResult:
        """
        Ingest one end-of-call delivery.

        Raises:
            AuthError: on a missing or wrong credential. Nothing else escapes.
        """
        self.authenticate(headers)
        try:
            return await self._process(payload)
        except MalformedPayload as e:
            logger.warning(f"Malformed webhook payload, acknowledging: {e}")
            return IngestResult(status=IngestStatus.IGNORED, message=str(e))
        except Exception as e:
            logger.exception(f"❌ Error processing webhook: {e}")
            return IngestResult(status=IngestStatus.ERROR, message=str(e))

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _process(self, payload: Any) -> IngestResult:
        extracted = extract_call_data(payload)

        if not is_final_event(extracted):
            logger.info(f"Skipping non-final event: {extracted.message_type}")
            return IngestResult(
                status=IngestStatus.SKIPPED,
                external_call_id=extracted.external_call_id,
                message=f"Event type {extracted.message_type} not processed",
            )

        call_id = extracted.external_call_id
        if not call_id:
            raise MalformedPayload("No call id in webhook payload")

        logger.info(f"Processing call {call_id} ({extracted.message_type or 'untyped event'})")

        existing = await asyncio.to_thread(self.store.get_call, call_id)
        if existing is not None and existing.claim_id:
            logger.info(f"Call {call_id} already has claim {existing.claim_id}, duplicate delivery")
            return IngestResult(
                status=IngestStatus.DUPLICATE,
                external_call_id=call_id,
                call_intent=existing.call_intent,
                homeowner_id=existing.homeowner_id,
                similarity=existing.similarity,
                message="Already processed",
            )

        fallback_fetched = False
        if extracted.missing_fields():
            extracted, fallback_fetched = await self._fill_from_vendor(extracted)

        intent = resolve_intent(extracted)
        logger.info(f"Call {call_id} intent: {intent.value}")

        # SQLite calls run off the event loop so a claim write waiting on the
        # database lock never holds up the gatekeeper
        match = await asyncio.to_thread(self._resolve_homeowner, extracted, intent)

        record = await asyncio.to_thread(self.store.upsert_call, self._build_record(extracted, intent, match))

        claim = None
        if intent == CallIntent.WARRANTY_ISSUE and record.homeowner_id:
            claim = await asyncio.to_thread(
                self.claim_creator.maybe_create, record.homeowner_id, extracted, intent
            )
            if claim is not None:
                await asyncio.to_thread(self.store.attach_claim_to_call, call_id, claim.id)
                record = record.model_copy(update={"claim_id": claim.id})

        if claim is not None:
            scenario = NotificationScenario.CLAIM_CREATED
        elif record.homeowner_id:
            scenario = NotificationScenario.MATCHED_NO_CLAIM
        else:
            scenario = NotificationScenario.UNMATCHED

        notified = False
        if existing is None or claim is not None:
            homeowner = match.homeowner if match else None
            if homeowner is None and record.homeowner_id:
                homeowner = await asyncio.to_thread(self.store.get_homeowner, record.homeowner_id)
            notified = await dispatch_safely(
                self.dispatcher,
                NotificationEvent(
                    scenario=scenario,
                    call_record=record,
                    homeowner=homeowner,
                    claim=claim,
                ),
            )
        else:
            logger.info(f"Call {call_id} was already processed, not notifying again")

        logger.info(f"✅ Call {call_id} processed: {scenario.value}")
        return IngestResult(
            status=IngestStatus.PROCESSED,
            external_call_id=call_id,
            call_intent=intent,
            scenario=scenario,
            homeowner_id=record.homeowner_id,
            similarity=record.similarity,
            claim=claim,
            fallback_fetched=fallback_fetched,
            notified=notified,
            missing_fields=extracted.missing_fields(),
        )

    async def _fill_from_vendor(self, extracted: ExtractedCallData) -> tuple[ExtractedCallData, bool]:
        """
        Single delayed fetch of the call object to fill missing fields.

        The vendor's structured outputs can land a moment after the webhook,
        so this waits once and asks again. It is never repeated.
        """
        call_id = extracted.external_call_id
        delay = self.settings.fallback_fetch_delay_seconds
        logger.info(
            f"Call {call_id} missing {', '.join(extracted.missing_fields())}; "
            f"fetching from Vapi API in {delay}s"
        )
        await self._sleep(delay)

        try:
            call_data = await self.vendor_client.fetch_call(call_id)
            fetched = extract_call_data(call_data)
        except (UpstreamFetchError, MalformedPayload) as e:
            logger.warning(f"Fallback fetch failed for call {call_id}, continuing with webhook data: {e}")
            return extracted, False

        return merge_missing(extracted, fetched), True

    def _resolve_homeowner(self, extracted: ExtractedCallData, intent: CallIntent) -> Optional[AddressMatch]:
        if intent != CallIntent.WARRANTY_ISSUE:
            return None
        if not extracted.property_address:
            logger.info(f"No property address for call {extracted.external_call_id}, cannot verify")
            return None

        match = self.matcher.find_match(extracted.property_address)
        if match:
            logger.info(
                f"✅ Matched homeowner {match.homeowner_id} "
                f"(similarity {match.similarity:.3f})"
            )
        else:
            logger.info(f"No homeowner match for '{extracted.property_address}', needs manual review")
        return match

    def _build_record(
        self,
        extracted: ExtractedCallData,
        intent: CallIntent,
        match: Optional[AddressMatch],
    ) -> CallRecord:
        phone = extracted.phone_number
        caller_phone = normalize_phone_number(phone, self.settings.default_country_code) or phone

        return CallRecord(
            external_call_id=extracted.external_call_id,
            caller_phone=caller_phone,
            homeowner_name=extracted.homeowner_name,
            property_address=extracted.property_address,
            issue_description=extracted.issue_description,
            call_intent=intent,
            extracted_fields=extracted.model_dump(exclude={"transcript"}, exclude_none=True),
            homeowner_id=match.homeowner_id if match else None,
            similarity=match.similarity if match else None,
            is_verified=match is not None,
            is_urgent=extracted.is_urgent,
            transcript=extracted.transcript,
            recording_url=extracted.recording_url,
        )
