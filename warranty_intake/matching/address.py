"""
Fuzzy address matching of spoken addresses against homeowner records.

Scoring is a normalized Levenshtein ratio over normalized address strings:

    similarity = 1 - distance(a, b) / max(len(a), len(b))

The acceptance threshold is permissive because the query comes from speech
transcription; false positives are caught in human review.
"""

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from rapidfuzz.distance import Levenshtein

from ..intake.schema import Homeowner

if TYPE_CHECKING:
    from ..storage.call_store import CallStore

logger = logging.getLogger(__name__)

DEFAULT_MIN_SIMILARITY = 0.4

STREET_TYPE_ABBREVIATIONS = {
    "street": "st",
    "avenue": "ave",
    "road": "rd",
    "drive": "dr",
    "court": "ct",
    "lane": "ln",
    "boulevard": "blvd",
    "way": "wy",
    "circle": "cir",
    "place": "pl",
    "parkway": "pkwy",
    "highway": "hwy",
    "terrace": "ter",
}

DIRECTIONAL_ABBREVIATIONS = {
    "north": "n",
    "south": "s",
    "east": "e",
    "west": "w",
    "northeast": "ne",
    "northwest": "nw",
    "southeast": "se",
    "southwest": "sw",
}

_TOKEN_ABBREVIATIONS = {**STREET_TYPE_ABBREVIATIONS, **DIRECTIONAL_ABBREVIATIONS}

_DROPPED_PUNCTUATION = re.compile(r"[.,#']")
_OTHER_PUNCTUATION = re.compile(r"[^a-z0-9\s]")
_ZIP_CODE = re.compile(r"\b(\d{5})(?:-\d{4})?\W*(?:usa?|united states)?\W*$", re.IGNORECASE)


@dataclass(frozen=True)
class AddressMatch:
    """Best homeowner for a spoken address."""
    homeowner: Homeowner
    similarity: float

    @property
    def homeowner_id(self) -> str:
        return self.homeowner.id


# =============================================================================
# Normalization & Scoring
# =============================================================================


def normalize_address(address: Optional[str]) -> str:
    """
    Normalize an address for comparison.

    Lowercases, strips punctuation, collapses whitespace and abbreviates
    street types and directionals ("123 North Main Street" -> "123 n main st").
    """
    if not address:
        return ""
    text = address.lower()
    text = _DROPPED_PUNCTUATION.sub("", text)
    text = _OTHER_PUNCTUATION.sub(" ", text)
    tokens = [_TOKEN_ABBREVIATIONS.get(token, token) for token in text.split()]
    return " ".join(tokens)


def calculate_similarity(address1: Optional[str], address2: Optional[str]) -> float:
    """Similarity of two raw addresses in [0, 1] after normalization."""
    a = normalize_address(address1)
    b = normalize_address(address2)
    if a == b:
        return 1.0 if a else 0.0
    if not a or not b:
        return 0.0
    distance = Levenshtein.distance(a, b)
    return 1.0 - distance / max(len(a), len(b))


def _rank_key(match: AddressMatch):
    # Higher similarity, then most recently active, then lowest id
    last_active = match.homeowner.last_active_at
    return (
        -round(match.similarity, 9),
        0 if last_active else 1,
        -last_active.timestamp() if last_active else 0.0,
        match.homeowner.id,
    )


def score_candidates(address: str, candidates: Iterable[Homeowner]) -> list[AddressMatch]:
    """Score every candidate with a non-blank address, best first."""
    scored = []
    for homeowner in candidates:
        if not (homeowner.address or "").strip():
            continue
        similarity = calculate_similarity(address, homeowner.address)
        if similarity >= 0.3:
            logger.debug(
                f"  {homeowner.id}: {similarity:.0%} similar "
                f"(input '{address}' vs '{homeowner.address}')"
            )
        scored.append(AddressMatch(homeowner=homeowner, similarity=similarity))
    scored.sort(key=_rank_key)
    return scored


def resolve_address(
    address: Optional[str],
    candidates: Iterable[Homeowner],
    threshold: float = DEFAULT_MIN_SIMILARITY,
) -> Optional[AddressMatch]:
    """
    Pick the homeowner whose address best matches.

    Returns:
        The top-ranked match if its similarity reaches the threshold, else None.
    """
    if not address or not address.strip():
        return None

    scored = score_candidates(address, candidates)
    if scored and scored[0].similarity >= threshold:
        best = scored[0]
        logger.info(f"Best match: {best.homeowner.name} ({best.similarity:.0%} similar)")
        return best

    logger.info(f"No match found above {threshold:.0%} threshold")
    return None


def find_top_matches(
    address: Optional[str],
    candidates: Iterable[Homeowner],
    threshold: float = DEFAULT_MIN_SIMILARITY,
    limit: int = 5,
) -> list[AddressMatch]:
    """All matches at or above the threshold, best first, capped at limit."""
    if not address or not address.strip():
        return []
    scored = score_candidates(address, candidates)
    return [m for m in scored if m.similarity >= threshold][:limit]


def describe_match_quality(similarity: float) -> str:
    """Human label for a similarity score."""
    if similarity >= 0.95:
        return "Excellent match"
    if similarity >= 0.85:
        return "Very good match"
    if similarity >= 0.70:
        return "Good match"
    if similarity >= 0.50:
        return "Fair match"
    return "Weak match"


def extract_zip_code(address: Optional[str]) -> Optional[str]:
    """
    Trailing 5-digit ZIP of the address, if it ends with one.

    House numbers are never taken for a ZIP, wherever they sit:
    "Apt 4, 12345 Main St" has no ZIP.
    """
    if not address:
        return None
    match = _ZIP_CODE.search(address.strip())
    if match is None or match.start() == 0:
        return None
    return match.group(1)


# =============================================================================
# Store-backed matcher
# =============================================================================


class HomeownerMatcher:
    """
    Candidate filter followed by scoring.

    The result is always the one a scan of every homeowner would give. When
    the spoken address contains a ZIP code, homeowners in that ZIP are scored
    first and an exact address match there ends the search early; anything
    less falls through to the full scan, so a misheard ZIP cannot pull the
    call onto the wrong homeowner.
    """

    def __init__(
        self,
        store: "CallStore",
        threshold: float = DEFAULT_MIN_SIMILARITY,
        prefilter_enabled: bool = True,
    ):
        self.store = store
        self.threshold = threshold
        self.prefilter_enabled = prefilter_enabled

    def exact_match_in_zip(self, address: str) -> Optional[AddressMatch]:
        """Best exact match among homeowners sharing the spoken ZIP, if any."""
        zip_code = extract_zip_code(address) if self.prefilter_enabled else None
        if not zip_code:
            return None

        nearby = self.store.list_homeowner_candidates(zip_code=zip_code)
        scored = score_candidates(address, nearby)
        if scored and scored[0].similarity >= 1.0:
            logger.info(f"Exact address match among {len(nearby)} homeowner(s) in ZIP {zip_code}")
            return scored[0]
        return None

    def find_match(self, address: Optional[str]) -> Optional[AddressMatch]:
        """
        Resolve an address to a homeowner.

        Raises:
            StoreError: if candidates cannot be loaded
        """
        if not address or not address.strip():
            logger.info("Empty address provided")
            return None

        exact = self.exact_match_in_zip(address)
        if exact is not None and exact.similarity >= self.threshold:
            return exact

        candidates = self.store.list_homeowner_candidates()
        logger.info(
            f"Fuzzy matching '{address}' against {len(candidates)} homeowner(s) "
            f"(min similarity: {self.threshold})"
        )
        return resolve_address(address, candidates, self.threshold)
