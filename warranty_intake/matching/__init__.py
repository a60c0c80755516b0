"""Address matching of spoken property addresses to homeowner records."""

from .address import (
    AddressMatch,
    HomeownerMatcher,
    calculate_similarity,
    describe_match_quality,
    extract_zip_code,
    find_top_matches,
    normalize_address,
    resolve_address,
)

__all__ = [
    "AddressMatch",
    "HomeownerMatcher",
    "calculate_similarity",
    "describe_match_quality",
    "extract_zip_code",
    "find_top_matches",
    "normalize_address",
    "resolve_address",
]
