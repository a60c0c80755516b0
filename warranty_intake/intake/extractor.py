"""
End-of-call payload extraction.

The vendor has moved its structured output around between API versions, so
every field is probed across an ordered list of payload locations and the
first non-empty value wins. The same extractor runs on webhook payloads and
on call objects fetched from the REST API.
"""

import logging
import re
from typing import Any, Iterable, Iterator, Optional

from ..errors import MalformedPayload
from .schema import CallIntent, ExtractedCallData

logger = logging.getLogger(__name__)


# =============================================================================
# Payload locations
# =============================================================================

# Where structured data has been observed, most specific first
STRUCTURED_DATA_PATHS = (
    "message.analysis.structuredData",
    "message.artifact.structuredOutputs",
    "message.artifact.structuredData",
    "message.structuredData",
    "message.call.analysis.structuredData",
    "message.call.artifact.structuredOutputs",
    "message.call.artifact.structuredData",
    "call.analysis.structuredData",
    "call.artifact.structuredOutputs",
    "call.artifact.structuredData",
    "analysis.structuredData",
    "artifact.structuredOutputs",
    "artifact.structuredData",
    "structuredData",
)

# Objects that may carry call-level fields directly ("" is the payload root)
CALL_OBJECT_PATHS = ("message.call", "call", "message", "")

CALL_ID_PATHS = (
    "message.call.id",
    "call.id",
    "message.call.callId",
    "call.callId",
    "id",
)

CALLER_ID_PATHS = (
    "message.call.customer.number",
    "message.customer.number",
    "call.customer.number",
    "customer.number",
    "message.call.phoneNumber",
    "call.phoneNumber",
    "message.call.from",
    "call.from",
)

TRANSCRIPT_PATHS = (
    "message.artifact.transcript",
    "message.transcript",
    "message.call.artifact.transcript",
    "message.call.transcript",
    "call.artifact.transcript",
    "call.transcript",
    "call.transcription",
    "artifact.transcript",
    "transcript",
)

RECORDING_URL_PATHS = (
    "message.recordingUrl",
    "message.artifact.recordingUrl",
    "message.call.recordingUrl",
    "call.recordingUrl",
    "call.recording_url",
    "artifact.recordingUrl",
    "recordingUrl",
)

MESSAGE_TYPE_PATHS = ("message.type", "type")

# Structured-data key aliases per field, preferred spelling first
FIELD_ALIASES = {
    "property_address": ("propertyAddress", "property_address", "address"),
    "homeowner_name": ("homeownerName", "homeowner_name", "name"),
    "phone_number": ("phoneNumber", "phone_number", "callbackNumber"),
    "issue_description": ("issueDescription", "issue_description", "description"),
    "call_intent": ("callIntent", "call_intent", "intent"),
}

URGENT_ALIASES = ("isUrgent", "is_urgent", "urgent")

# Call-level keys consulted when structured data has nothing
CALL_LEVEL_ALIASES = {
    "property_address": ("propertyAddress", "address"),
    "homeowner_name": ("homeownerName",),
    "phone_number": ("phoneNumber",),
}

# Values the assistant writes when the caller never said anything useful
PLACEHOLDER_VALUES = {"", "not provided", "n/a", "na", "none", "null", "unknown", "undefined"}

FINAL_EVENT_TYPES = {"end-of-call-report", "function-call"}

INTENT_ALIASES = {
    CallIntent.WARRANTY_ISSUE: (
        "warranty_issue", "warranty", "new_claim", "claim", "emergency", "urgent", "repair",
    ),
    CallIntent.GENERAL_QUESTION: (
        "general_question", "question", "general", "inquiry", "other",
    ),
    CallIntent.SOLICITATION: (
        "solicitation", "spam", "sales", "sales_call", "telemarketing", "robocall",
    ),
}
_INTENT_LOOKUP = {alias: intent for intent, aliases in INTENT_ALIASES.items() for alias in aliases}

URGENT_INTENTS = {"urgent", "emergency"}

# Minimum description length that implies a real service request
ROBUST_DESCRIPTION_LENGTH = 20


# =============================================================================
# Helper Functions
# =============================================================================


def get_nested(data: Any, path: str, default=None):
    """Get a nested value using dot notation. An empty path returns data itself."""
    if not path:
        return data
    current: Any = data
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, list) and key.isdigit():
            idx = int(key)
            current = current[idx] if len(current) > idx else None
        else:
            return default
        if current is None:
            return default
    return current


def clean_text(value: Any) -> Optional[str]:
    """Return a stripped string, or None for empty and placeholder values."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    if value.lower() in PLACEHOLDER_VALUES:
        return None
    return value


def coerce_bool(value: Any) -> Optional[bool]:
    """Interpret booleans the vendor may send as strings or numbers."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "y", "1"):
            return True
        if lowered in ("false", "no", "n", "0"):
            return False
    return None


def flatten_structured_outputs(block: dict) -> dict:
    """
    Collapse vendor structured outputs into one flat mapping.

    Newer payloads key each output by id: {"<uuid>": {"name": ..., "result": ...}}.
    Dict results are merged; scalar results are keyed by the output name.
    Older payloads are already flat and pass through unchanged.
    """
    flat: dict = {}
    for key, value in block.items():
        if isinstance(value, dict) and "result" in value:
            result = value["result"]
            if isinstance(result, dict):
                for result_key, result_value in result.items():
                    flat.setdefault(result_key, result_value)
            elif value.get("name"):
                flat.setdefault(value["name"], result)
        else:
            flat.setdefault(key, value)
    return flat


def iter_structured_blocks(payload: dict) -> Iterator[dict]:
    """Yield every non-empty structured-data block, in probe order."""
    for path in STRUCTURED_DATA_PATHS:
        block = get_nested(payload, path)
        if isinstance(block, dict) and block:
            yield flatten_structured_outputs(block)


def first_text(sources: Iterable[dict], aliases: tuple[str, ...]) -> Optional[str]:
    """First non-empty value for any alias across sources."""
    for source in sources:
        for alias in aliases:
            value = clean_text(source.get(alias))
            if value:
                return value
    return None


def first_bool(sources: Iterable[dict], aliases: tuple[str, ...]) -> Optional[bool]:
    """First value for any alias across sources that reads as a boolean."""
    for source in sources:
        for alias in aliases:
            flag = coerce_bool(source.get(alias))
            if flag is not None:
                return flag
    return None


def first_text_at(payload: dict, paths: tuple[str, ...]) -> Optional[str]:
    """First non-empty value at any of the dotted paths."""
    for path in paths:
        value = clean_text(get_nested(payload, path))
        if value:
            return value
    return None


def _call_objects(payload: dict) -> list[dict]:
    objects = []
    for path in CALL_OBJECT_PATHS:
        candidate = get_nested(payload, path)
        if isinstance(candidate, dict):
            objects.append(candidate)
    return objects


# =============================================================================
# Extraction
# =============================================================================


def extract_call_data(payload: dict) -> ExtractedCallData:
    """
    Extract every intake field from a webhook payload or fetched call object.

    Missing fields come back as None (or False for is_urgent); this never
    raises for an absent field.

    Raises:
        MalformedPayload: if the payload is not a JSON object at all
    """
    if not isinstance(payload, dict):
        raise MalformedPayload(f"Expected a JSON object, got {type(payload).__name__}")

    structured = list(iter_structured_blocks(payload))
    call_objects = _call_objects(payload)

    fields: dict[str, Optional[str]] = {}
    for name, aliases in FIELD_ALIASES.items():
        value = first_text(structured, aliases)
        if value is None and name in CALL_LEVEL_ALIASES:
            value = first_text(call_objects, CALL_LEVEL_ALIASES[name])
        fields[name] = value

    # Caller ID is the last resort for a callback number
    if not fields["phone_number"]:
        fields["phone_number"] = first_text_at(payload, CALLER_ID_PATHS)

    is_urgent = first_bool(structured, URGENT_ALIASES) or False

    raw_intent = fields["call_intent"]
    if raw_intent and raw_intent.lower() in URGENT_INTENTS:
        is_urgent = True

    return ExtractedCallData(
        external_call_id=first_text_at(payload, CALL_ID_PATHS),
        message_type=first_text_at(payload, MESSAGE_TYPE_PATHS),
        property_address=fields["property_address"],
        homeowner_name=fields["homeowner_name"],
        phone_number=fields["phone_number"],
        issue_description=fields["issue_description"],
        call_intent=raw_intent,
        is_urgent=is_urgent,
        transcript=first_text_at(payload, TRANSCRIPT_PATHS),
        recording_url=first_text_at(payload, RECORDING_URL_PATHS),
    )


def merge_missing(local: ExtractedCallData, fetched: ExtractedCallData) -> ExtractedCallData:
    """Fill fields that are empty locally with values from a fetched call. Local values win."""
    updates = {}
    for name in (
        "property_address",
        "homeowner_name",
        "phone_number",
        "issue_description",
        "call_intent",
        "transcript",
        "recording_url",
    ):
        if not getattr(local, name) and getattr(fetched, name):
            updates[name] = getattr(fetched, name)
    if fetched.is_urgent and not local.is_urgent:
        updates["is_urgent"] = True
    if updates:
        logger.info(f"Fallback fetch filled: {', '.join(sorted(updates))}")
    return local.model_copy(update=updates)


def resolve_intent(extracted: ExtractedCallData) -> CallIntent:
    """
    Map the vendor's raw intent onto a CallIntent.

    Unknown or missing intents default to a warranty issue when the caller
    gave a substantial issue description, otherwise to a general question.
    """
    raw = extracted.call_intent
    if raw:
        key = re.sub(r"[\s\-]+", "_", raw.strip().lower())
        intent = _INTENT_LOOKUP.get(key)
        if intent is not None:
            return intent
        logger.info(f"Unrecognized call intent '{raw}', applying default")

    description = extracted.issue_description or ""
    if len(description) > ROBUST_DESCRIPTION_LENGTH:
        return CallIntent.WARRANTY_ISSUE
    return CallIntent.GENERAL_QUESTION


def is_final_event(extracted: ExtractedCallData) -> bool:
    """True when the event is worth running the pipeline for."""
    return (
        extracted.message_type in FINAL_EVENT_TYPES
        or bool(extracted.property_address)
        or bool(extracted.call_intent)
    )
