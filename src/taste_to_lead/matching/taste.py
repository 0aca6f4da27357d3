"""Pure scoring functions for buyer taste and vibe-vector matching.

Every function here is total: absent profiles, unknown vibes, empty or
zero-magnitude vectors all score 0 rather than raising.
"""

import math
from collections.abc import Iterable, Mapping
from typing import Final

from taste_to_lead.models import (
    UNCLASSIFIED,
    BuyerVibeProfile,
    SwipeAction,
    TasteProfile,
    Vibe,
    VibeScore,
    VibeSwipe,
    VibeVector,
    VibeWeight,
)
from taste_to_lead.taxonomy import VIBES, to_vibe

ACTION_WEIGHTS: Final[dict[SwipeAction, float]] = {
    SwipeAction.LIKE: 2,
    SwipeAction.SAVE: 4,
    SwipeAction.SKIP: 0.5,
    SwipeAction.NOPE: -1,
}

TOP_VIBES_LIMIT: Final = 3

# Decimal places kept on normalized vector weights
VECTOR_PRECISION: Final = 4


def clamp(value: float, lower: float, upper: float) -> float:
    return min(upper, max(lower, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives (12.5 -> 13)."""
    return math.floor(value + 0.5)


def _as_number(value: object) -> float:
    """Coerce a vector/profile entry to a finite float, or 0."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    number = float(value)
    return number if math.isfinite(number) else 0.0


def _lookup(mapping: Mapping[str, object] | Mapping[Vibe, object], vibe: Vibe) -> float:
    """Read a vibe's entry whether the mapping is keyed by enum member or by name."""
    value = mapping.get(vibe)  # type: ignore[call-overload]
    if value is None:
        value = mapping.get(vibe.value)  # type: ignore[call-overload]
    return _as_number(value)


def rank_vibes(scores: Mapping[Vibe, float], limit: int = TOP_VIBES_LIMIT) -> list[Vibe]:
    """Vibes ordered by descending score, ties broken by name."""
    return sorted(VIBES, key=lambda v: (-scores[v], v.value))[:limit]


def compute_taste_profile_from_swipes(swiped_vibes: Iterable[str | Vibe]) -> TasteProfile:
    """Count liked vibes and derive rounded percentages and the top vibe.

    The top vibe is the first vibe in taxonomy order holding the highest count;
    None when there are no swipes. Names that are not vibes are ignored.
    """
    counts = dict.fromkeys(VIBES, 0)
    for name in swiped_vibes:
        vibe = to_vibe(name)
        if vibe is not None:
            counts[vibe] += 1

    total = sum(counts.values())
    percentages = {
        v: round_half_up(counts[v] / total * 100) if total > 0 else 0 for v in VIBES
    }

    top_vibe: Vibe | None = None
    top_count = 0
    for vibe in VIBES:
        if counts[vibe] > top_count:
            top_count = counts[vibe]
            top_vibe = vibe

    return TasteProfile(counts=counts, percentages=percentages, top_vibe=top_vibe)


def compute_taste_score(
    profile_counts: Mapping[str, float] | Mapping[Vibe, float] | None,
    vibe: str | Vibe | None,
) -> int:
    """Share (0-100) of a buyer's swipe counts that went to this vibe.

    Args:
        profile_counts: Swipe counts keyed by vibe. None means no profile.
        vibe: The property's vibe tag.

    Returns:
        Rounded percentage, or 0 for missing profiles, unclassified or unknown vibes.
    """
    if not profile_counts or vibe is None or vibe == UNCLASSIFIED:
        return 0
    resolved = to_vibe(vibe)
    if resolved is None:
        return 0

    total = sum(_as_number(value) for value in profile_counts.values())
    if total <= 0:
        return 0

    count = _lookup(profile_counts, resolved)
    if count <= 0:
        return 0
    return int(clamp(round_half_up(count / total * 100), 0, 100))


def compute_match_score(taste_score: float, recency_boost: float = 0) -> int:
    """Add a recency boost to a taste score and clamp to 0-100."""
    total = _as_number(taste_score) + _as_number(recency_boost)
    return int(clamp(round_half_up(total), 0, 100))


def _action_weight(action: SwipeAction | str) -> float | None:
    try:
        return ACTION_WEIGHTS[SwipeAction(action)]
    except ValueError:
        return None


def compute_buyer_vibe_vector(events: Iterable[VibeSwipe]) -> BuyerVibeProfile:
    """Aggregate weighted swipes into a normalized buyer vibe vector.

    Each event with a known vibe adds its action weight (save=4, like=2,
    skip=0.5, nope=-1) to that vibe's raw score. Raw scores are floored at
    zero before normalizing, so "nope" only ever shrinks a vibe's share and
    an all-"nope" history yields the all-zero vector.

    Returns:
        The vector (sums to 1, or all zero), the top three vibes, and the top
        three raw weights as rationale.
    """
    raw = dict.fromkeys(VIBES, 0.0)
    for event in events:
        vibe = to_vibe(event.vibe)
        weight = _action_weight(event.action)
        if vibe is None or weight is None:
            continue
        raw[vibe] += weight

    floored = {v: max(raw[v], 0.0) for v in VIBES}
    total = sum(floored.values())
    vector: VibeVector = {
        v: round(floored[v] / total, VECTOR_PRECISION) if total > 0 else 0.0 for v in VIBES
    }

    top_vibes = [VibeScore(vibe=v, score=vector[v]) for v in rank_vibes(vector)]
    rounded_raw = {v: round(raw[v], 2) for v in VIBES}
    rationale = [VibeWeight(vibe=v, weight=rounded_raw[v]) for v in rank_vibes(rounded_raw)]

    return BuyerVibeProfile(vector=vector, top_vibes=top_vibes, rationale=rationale)


def compute_vector_match_score(
    buyer_vector: Mapping[str, float] | Mapping[Vibe, float] | None,
    listing_vector: Mapping[str, float] | Mapping[Vibe, float] | None,
) -> int:
    """Cosine similarity of two vibe vectors, as a 0-100 integer.

    Only the eight taxonomy keys are read; missing keys count as 0.
    Returns 0 when either vector is absent or has zero magnitude.
    """
    if not buyer_vector or not listing_vector:
        return 0

    dot = 0.0
    buyer_mag_sq = 0.0
    listing_mag_sq = 0.0
    for vibe in VIBES:
        b = _lookup(buyer_vector, vibe)
        l = _lookup(listing_vector, vibe)  # noqa: E741
        dot += b * l
        buyer_mag_sq += b * b
        listing_mag_sq += l * l

    if buyer_mag_sq <= 0 or listing_mag_sq <= 0:
        return 0
    cosine = dot / (math.sqrt(buyer_mag_sq) * math.sqrt(listing_mag_sq))
    return int(clamp(round_half_up(cosine * 100), 0, 100))
