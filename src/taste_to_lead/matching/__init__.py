"""Buyer taste scoring, listing vibe inference and lead evaluation."""

from taste_to_lead.matching.leads import build_buyer_profile, evaluate_lead
from taste_to_lead.matching.listing_vibe import compute_listing_vibe_vector
from taste_to_lead.matching.taste import (
    compute_buyer_vibe_vector,
    compute_match_score,
    compute_taste_profile_from_swipes,
    compute_taste_score,
    compute_vector_match_score,
)

__all__ = [
    "build_buyer_profile",
    "compute_buyer_vibe_vector",
    "compute_listing_vibe_vector",
    "compute_match_score",
    "compute_taste_profile_from_swipes",
    "compute_taste_score",
    "compute_vector_match_score",
    "evaluate_lead",
]
