"""Listing vibe inference from listing text."""

import json
from collections.abc import Mapping
from typing import Any, Final

from taste_to_lead.matching.taste import TOP_VIBES_LIMIT, rank_vibes
from taste_to_lead.models import (
    ListingVibeRationale,
    ListingVibeResult,
    Vibe,
    VibeScore,
    VibeVector,
)
from taste_to_lead.taxonomy import VIBE_DEFINITIONS, VIBES

LISTING_VIBE_ALGORITHM_VERSION: Final = "taste-portfolio-v1"

# Floor on each vibe's raw score: a listing with no matches still gets a
# uniform prior instead of a zero vector (which would never match anyone).
SCORE_FLOOR: Final = 0.01

# Matched terms kept per vibe in the rationale
MAX_MATCHED_TERMS: Final = 8

# Listing weights are stored to 3 decimals; buyer vectors keep 4
LISTING_VECTOR_PRECISION: Final = 3


def _structured_text(structured: Mapping[str, Any] | None) -> str:
    return json.dumps(
        dict(structured or {}), separators=(",", ":"), ensure_ascii=False, default=str
    )


def compute_listing_vibe_vector(
    description: str | None = None,
    photos_text: str | None = None,
    structured: Mapping[str, Any] | None = None,
) -> ListingVibeResult:
    """Infer a listing's vibe vector by substring-matching taxonomy terms.

    All text signals are lowercased and concatenated; each vibe scores the
    number of its keywords and visual cues found as substrings, floored at
    0.01, then scores are normalized across the eight vibes.

    Args:
        description: Listing description.
        photos_text: Captions or alt text of listing photos.
        structured: Structured listing fields, serialized to JSON and searched too.
    """
    haystack = " ".join(
        [description or "", photos_text or "", _structured_text(structured)]
    ).lower()

    raw_scores: dict[Vibe, float] = {}
    rationale: list[ListingVibeRationale] = []
    for vibe in VIBES:
        definition = VIBE_DEFINITIONS[vibe]
        terms = [*definition.keywords, *definition.visual_cues]
        matched = [term for term in terms if term.lower() in haystack]
        score = max(SCORE_FLOOR, float(len(matched)))
        raw_scores[vibe] = score
        rationale.append(
            ListingVibeRationale(
                vibe=vibe, matched=matched[:MAX_MATCHED_TERMS], score=round(score, 2)
            )
        )

    total = sum(raw_scores.values())
    vibe_vector: VibeVector = {
        v: round(raw_scores[v] / total, LISTING_VECTOR_PRECISION) for v in VIBES
    }

    top_vibes = [VibeScore(vibe=v, score=vibe_vector[v]) for v in rank_vibes(vibe_vector)]
    rationale.sort(key=lambda r: (-r.score, r.vibe.value))

    return ListingVibeResult(
        vibe_vector=vibe_vector,
        top_vibes=top_vibes,
        rationale=rationale[:TOP_VIBES_LIMIT],
        algorithm_version=LISTING_VIBE_ALGORITHM_VERSION,
    )
