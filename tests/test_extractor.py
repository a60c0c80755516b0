"""
Tests for end-of-call payload extraction.

The vendor has shipped structured data in several places over time; every
shape below has been seen in production webhooks.
"""

import pytest

from warranty_intake.errors import MalformedPayload
from warranty_intake.intake.extractor import (
    extract_call_data,
    flatten_structured_outputs,
    get_nested,
    is_final_event,
    merge_missing,
    resolve_intent,
)
from warranty_intake.intake.schema import CallIntent, ExtractedCallData


def end_of_call(structured: dict, location: str = "analysis", **call_fields) -> dict:
    """Build an end-of-call-report with structured data at a given location."""
    message = {
        "type": "end-of-call-report",
        "call": {"id": "call-123", "customer": {"number": "+15559999999"}, **call_fields},
    }
    if location == "analysis":
        message["analysis"] = {"structuredData": structured}
    elif location == "artifact":
        message["artifact"] = {"structuredOutputs": structured}
    elif location == "call":
        message["call"]["analysis"] = {"structuredData": structured}
    return {"message": message}


class TestGetNested:

    def test_paths(self):
        data = {"a": {"b": [{"c": 1}]}}
        assert get_nested(data, "a.b.0.c") == 1
        assert get_nested(data, "a.x.c", default="d") == "d"
        assert get_nested(data, "") is data


class TestStructuredDataLocations:

    @pytest.mark.parametrize("location", ["analysis", "artifact", "call"])
    def test_found_in_each_location(self, location):
        payload = end_of_call({"propertyAddress": "123 Main St"}, location=location)
        assert extract_call_data(payload).property_address == "123 Main St"

    def test_top_level_call_object(self):
        payload = {
            "call": {
                "id": "call-9",
                "analysis": {"structuredData": {"property_address": "9 Elm Rd"}},
            }
        }
        extracted = extract_call_data(payload)
        assert extracted.external_call_id == "call-9"
        assert extracted.property_address == "9 Elm Rd"

    def test_fetched_call_object_shape(self):
        # GET /call/{id} returns the call at the root
        call = {
            "id": "call-123",
            "analysis": {"structuredData": {"address": "55 Birch Way"}},
            "customer": {"number": "+15551112222"},
        }
        extracted = extract_call_data(call)
        assert extracted.property_address == "55 Birch Way"
        assert extracted.phone_number == "+15551112222"

    def test_first_location_wins(self):
        payload = end_of_call({"propertyAddress": "From analysis"})
        payload["message"]["artifact"] = {"structuredData": {"propertyAddress": "From artifact"}}
        assert extract_call_data(payload).property_address == "From analysis"

    def test_later_location_fills_gaps(self):
        payload = end_of_call({"homeownerName": "Jordan Lee"})
        payload["message"]["artifact"] = {"structuredData": {"propertyAddress": "123 Main St"}}
        extracted = extract_call_data(payload)
        assert extracted.homeowner_name == "Jordan Lee"
        assert extracted.property_address == "123 Main St"


class TestStructuredOutputs:

    def test_outputs_keyed_by_id_are_flattened(self):
        outputs = {
            "5f1c": {"name": "intake", "result": {"propertyAddress": "123 Main St", "isUrgent": True}},
            "9a2b": {"name": "callIntent", "result": "new_claim"},
        }
        extracted = extract_call_data(end_of_call(outputs, location="artifact"))

        assert extracted.property_address == "123 Main St"
        assert extracted.is_urgent is True
        assert extracted.call_intent == "new_claim"

    def test_flat_block_passes_through(self):
        assert flatten_structured_outputs({"address": "1 A St"}) == {"address": "1 A St"}


class TestFieldValues:

    def test_aliases(self):
        extracted = extract_call_data(end_of_call({
            "property_address": "1 A St",
            "name": "Sam",
            "callbackNumber": "555-123-4567",
            "description": "Leaking pipe under sink",
            "intent": "warranty_issue",
        }))
        assert extracted.property_address == "1 A St"
        assert extracted.homeowner_name == "Sam"
        assert extracted.phone_number == "555-123-4567"
        assert extracted.issue_description == "Leaking pipe under sink"
        assert extracted.call_intent == "warranty_issue"

    @pytest.mark.parametrize("placeholder", ["Not provided", "N/A", "unknown", "  ", "null"])
    def test_placeholders_are_absent(self, placeholder):
        extracted = extract_call_data(end_of_call({"propertyAddress": placeholder}))
        assert extracted.property_address is None
        assert "property_address" in extracted.missing_fields()

    def test_call_level_address_fallback(self):
        payload = end_of_call({}, propertyAddress="77 Pine Ln")
        assert extract_call_data(payload).property_address == "77 Pine Ln"

    def test_phone_falls_back_to_caller_id(self):
        extracted = extract_call_data(end_of_call({"propertyAddress": "1 A St"}))
        assert extracted.phone_number == "+15559999999"

    def test_urgency_as_string(self):
        extracted = extract_call_data(end_of_call({"isUrgent": "yes"}))
        assert extracted.is_urgent is True

    def test_emergency_intent_sets_urgent(self):
        extracted = extract_call_data(end_of_call({"callIntent": "emergency"}))
        assert extracted.is_urgent is True

    def test_transcript_and_recording(self):
        payload = end_of_call({})
        payload["message"]["artifact"] = {"transcript": "AI: Hello", "recordingUrl": "https://rec/1.wav"}
        extracted = extract_call_data(payload)
        assert extracted.transcript == "AI: Hello"
        assert extracted.recording_url == "https://rec/1.wav"

    def test_missing_everything_is_not_an_error(self):
        extracted = extract_call_data({})
        assert extracted.external_call_id is None
        assert extracted.property_address is None
        assert extracted.is_urgent is False

    def test_non_object_payload(self):
        with pytest.raises(MalformedPayload):
            extract_call_data(["not", "an", "object"])


class TestIntent:

    @pytest.mark.parametrize("raw,expected", [
        ("warranty_issue", CallIntent.WARRANTY_ISSUE),
        ("new_claim", CallIntent.WARRANTY_ISSUE),
        ("Emergency", CallIntent.WARRANTY_ISSUE),
        ("general question", CallIntent.GENERAL_QUESTION),
        ("other", CallIntent.GENERAL_QUESTION),
        ("spam", CallIntent.SOLICITATION),
        ("solicitation", CallIntent.SOLICITATION),
    ])
    def test_aliases(self, raw, expected):
        assert resolve_intent(ExtractedCallData(call_intent=raw)) == expected

    def test_default_with_substantial_description(self):
        extracted = ExtractedCallData(issue_description="Water is leaking through the kitchen ceiling")
        assert resolve_intent(extracted) == CallIntent.WARRANTY_ISSUE

    def test_default_with_short_description(self):
        assert resolve_intent(ExtractedCallData(issue_description="hi")) == CallIntent.GENERAL_QUESTION
        assert resolve_intent(ExtractedCallData()) == CallIntent.GENERAL_QUESTION

    def test_unknown_intent_uses_default(self):
        extracted = ExtractedCallData(call_intent="banana", issue_description="short")
        assert resolve_intent(extracted) == CallIntent.GENERAL_QUESTION


class TestEventsAndMerge:

    def test_final_events(self):
        assert is_final_event(ExtractedCallData(message_type="end-of-call-report"))
        assert is_final_event(ExtractedCallData(message_type="function-call"))
        assert is_final_event(ExtractedCallData(message_type="status-update", property_address="1 A St"))
        assert not is_final_event(ExtractedCallData(message_type="status-update"))
        assert not is_final_event(ExtractedCallData(message_type="transcript"))

    def test_merge_fills_only_missing(self):
        local = ExtractedCallData(external_call_id="c1", homeowner_name="Local Name")
        fetched = ExtractedCallData(
            external_call_id="c1",
            homeowner_name="Fetched Name",
            property_address="123 Main St",
            is_urgent=True,
        )
        merged = merge_missing(local, fetched)

        assert merged.homeowner_name == "Local Name"
        assert merged.property_address == "123 Main St"
        assert merged.is_urgent is True
        assert local.property_address is None
