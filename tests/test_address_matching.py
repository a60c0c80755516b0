"""
Tests for address normalization and homeowner matching.

Covers:
- Normalization of punctuation, street types and directionals
- The similarity ratio and the 0.4 acceptance threshold
- Deterministic tie-breaking
- The ZIP fast path, which never changes the full-scan result
"""

from datetime import datetime, timezone

import pytest

from warranty_intake.intake.schema import Homeowner
from warranty_intake.matching import (
    HomeownerMatcher,
    calculate_similarity,
    describe_match_quality,
    extract_zip_code,
    find_top_matches,
    normalize_address,
    resolve_address,
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def homeowners():
    return [
        Homeowner(id="ho-1", name="Jordan Lee", address="123 Main St, Seattle, WA 98101"),
        Homeowner(id="ho-3", name="Alex Chen", address="88 Cedar Court, Bellevue, WA 98004"),
        Homeowner(id="ho-4", name="No Address", address=""),
    ]


# ============================================================================
# Test: Normalization
# ============================================================================


class TestNormalizeAddress:

    def test_street_type_and_punctuation(self):
        assert normalize_address("123 Main Street, Seattle, WA 98101") == "123 main st seattle wa 98101"

    def test_directionals(self):
        assert normalize_address("4500 Northeast Lakeview Drive") == "4500 ne lakeview dr"
        assert normalize_address("10 North Oak Avenue") == "10 n oak ave"

    def test_unit_markers_and_whitespace(self):
        assert normalize_address("  77   Pine Lane   Apt #4B ") == "77 pine ln apt 4b"

    def test_other_punctuation_splits_tokens(self):
        assert normalize_address("5th-Avenue") == "5th ave"

    def test_empty(self):
        assert normalize_address("") == ""
        assert normalize_address(None) == ""

    def test_abbreviated_and_spelled_out_converge(self):
        assert normalize_address("12 Elm Blvd.") == normalize_address("12 elm boulevard")


# ============================================================================
# Test: Similarity
# ============================================================================


class TestSimilarity:

    def test_identical_after_normalization(self):
        assert calculate_similarity("123 Main Street", "123 main st.") == 1.0

    def test_empty_is_zero(self):
        assert calculate_similarity("", "123 Main St") == 0.0
        assert calculate_similarity("123 Main St", None) == 0.0
        assert calculate_similarity("", "") == 0.0

    def test_ratio(self):
        # Three substitutions over five characters
        assert calculate_similarity("abcde", "abxyz") == pytest.approx(0.4)

    def test_bounded(self):
        score = calculate_similarity("1 A St", "9876 Completely Different Parkway Northwest")
        assert 0.0 <= score <= 1.0


# ============================================================================
# Test: Resolution
# ============================================================================


class TestResolveAddress:

    def test_seattle_spoken_address_matches(self, homeowners):
        match = resolve_address("123 Main Street Seattle WA", homeowners)

        assert match is not None
        assert match.homeowner_id == "ho-1"
        assert match.similarity >= 0.4

    def test_no_candidate_above_threshold(self, homeowners):
        assert resolve_address("PO Box 7", homeowners) is None

    def test_threshold_is_inclusive_and_configurable(self):
        candidates = [Homeowner(id="ho-x", name="X", address="abxyz")]
        assert resolve_address("abcde", candidates, threshold=0.39) is not None
        assert resolve_address("abcde", candidates, threshold=0.41) is None

    def test_blank_candidate_addresses_skipped(self, homeowners):
        matches = find_top_matches("123 Main St", homeowners, threshold=0.0)
        assert "ho-4" not in [m.homeowner_id for m in matches]

    def test_empty_query(self, homeowners):
        assert resolve_address("", homeowners) is None
        assert resolve_address("   ", homeowners) is None

    def test_no_candidates(self):
        assert resolve_address("123 Main St", []) is None


class TestTieBreak:
    """Equal scores resolve by recency, then by id."""

    def test_most_recently_active_wins(self):
        candidates = [
            Homeowner(
                id="ho-a", name="A", address="1 Oak Ln",
                last_active_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            ),
            Homeowner(
                id="ho-b", name="B", address="1 Oak Ln",
                last_active_at=datetime(2026, 6, 1, tzinfo=timezone.utc),
            ),
        ]
        assert resolve_address("1 Oak Lane", candidates).homeowner_id == "ho-b"

    def test_missing_activity_sorts_last(self):
        candidates = [
            Homeowner(id="ho-a", name="A", address="1 Oak Ln"),
            Homeowner(
                id="ho-b", name="B", address="1 Oak Ln",
                last_active_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
            ),
        ]
        assert resolve_address("1 Oak Lane", candidates).homeowner_id == "ho-b"

    def test_lowest_id_last_resort(self):
        candidates = [
            Homeowner(id="ho-z", name="Z", address="1 Oak Ln"),
            Homeowner(id="ho-a", name="A", address="1 Oak Ln"),
        ]
        assert resolve_address("1 Oak Lane", candidates).homeowner_id == "ho-a"
        # Input order does not matter
        assert resolve_address("1 Oak Lane", list(reversed(candidates))).homeowner_id == "ho-a"


class TestReviewHelpers:

    def test_top_matches_ordered_and_limited(self, homeowners):
        matches = find_top_matches("123 Main St Seattle", homeowners, threshold=0.0, limit=1)
        assert len(matches) == 1
        assert matches[0].homeowner_id == "ho-1"

    @pytest.mark.parametrize("similarity,label", [
        (1.0, "Excellent match"),
        (0.9, "Very good match"),
        (0.75, "Good match"),
        (0.55, "Fair match"),
        (0.41, "Weak match"),
    ])
    def test_match_quality_labels(self, similarity, label):
        assert describe_match_quality(similarity) == label

    def test_extract_zip_code(self):
        assert extract_zip_code("123 Main St, Seattle, WA 98101") == "98101"
        assert extract_zip_code("123 Main St, Seattle, WA 98101-1234") == "98101"
        assert extract_zip_code("123 Main St, Seattle, WA 98101, USA") == "98101"
        assert extract_zip_code("12345 Main St") is None
        assert extract_zip_code("Apt 4, 12345 Main St") is None
        assert extract_zip_code(None) is None


# ============================================================================
# Test: Store-backed matcher
# ============================================================================


class TestHomeownerMatcher:

    def test_exact_match_within_zip(self, seeded_store):
        matcher = HomeownerMatcher(seeded_store)
        match = matcher.exact_match_in_zip("88 Cedar Court, Bellevue, WA 98004")
        assert match.homeowner_id == "ho-3"
        assert match.similarity == 1.0

    def test_near_match_within_zip_is_not_final(self, seeded_store):
        matcher = HomeownerMatcher(seeded_store)
        assert matcher.exact_match_in_zip("88 Cedar Ct Bellvue WA 98004") is None

    def test_prefilter_disabled(self, seeded_store):
        matcher = HomeownerMatcher(seeded_store, prefilter_enabled=False)
        assert matcher.exact_match_in_zip("88 Cedar Court, Bellevue, WA 98004") is None
        assert matcher.find_match("88 Cedar Court, Bellevue, WA 98004").homeowner_id == "ho-3"

    def test_find_match(self, seeded_store):
        match = HomeownerMatcher(seeded_store).find_match("123 Main Street Seattle WA")
        assert match is not None
        assert match.homeowner_id == "ho-1"
        assert match.homeowner.name == "Jordan Lee"

    def test_find_match_empty_address(self, seeded_store):
        assert HomeownerMatcher(seeded_store).find_match(None) is None

    def test_misheard_zip_still_finds_best_homeowner(self, seeded_store):
        # 98004 belongs to ho-3, but the street is ho-1's
        address = "123 Main Street Seattle WA 98004"
        match = HomeownerMatcher(seeded_store).find_match(address)

        assert match.homeowner_id == "ho-1"
        assert match.similarity > 0.9

    def test_unknown_zip_scores_everyone(self, seeded_store):
        match = HomeownerMatcher(seeded_store).find_match("123 Main Street, Seattle 99999")
        assert match.homeowner_id == "ho-1"

    @pytest.mark.parametrize("address", [
        "123 Main Street Seattle WA 98004",
        "4500 NE Lakeview Dr Kirkland 98101",
        "88 Cedar Ct Bellevue WA 98033",
        "88 Cedar Court, Bellevue, WA 98004",
        "Apt 4, 98101 Main St",
        "1 Unrelated Rd 98004",
    ])
    def test_same_result_as_full_scan(self, seeded_store, address):
        full_scan = resolve_address(address, seeded_store.list_homeowner_candidates())
        match = HomeownerMatcher(seeded_store).find_match(address)

        if full_scan is None:
            assert match is None
        else:
            assert match.homeowner_id == full_scan.homeowner_id
            assert match.similarity == pytest.approx(full_scan.similarity)
