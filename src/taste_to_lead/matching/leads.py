"""Lead evaluation: score a buyer's swipe against a listing and decide on a lead."""

from collections.abc import Iterable, Mapping
from typing import Final

from taste_to_lead.logging import get_logger
from taste_to_lead.matching.taste import compute_buyer_vibe_vector, compute_vector_match_score
from taste_to_lead.models import (
    BuyerVibeProfile,
    LeadDecision,
    ListingVibes,
    SwipeAction,
    SwipeEvent,
    Vibe,
    VibeScore,
    VibeSwipe,
    VibeVector,
)
from taste_to_lead.taxonomy import VIBE_DEFINITIONS, VIBES, to_vibe

logger = get_logger(__name__)

# A swipe scoring at least this creates a lead even without a save
LEAD_MATCH_THRESHOLD: Final = 85
# Leads at or above this are pushed to the agent as critical
HOT_LEAD_THRESHOLD: Final = 95

TALK_TRACK_KEYWORDS: Final = 4

EMERGING_BUYER_TALK_TRACK: Final = (
    "This buyer is still emerging. Pitch based on clear style cues and price fit."
)


def top_vibe_for_listing(vibe_top: list[VibeScore] | None, vibe_tag: str | None) -> Vibe | None:
    """The listing's leading vibe: first ranked vibe, else its tagger label."""
    if vibe_top:
        return vibe_top[0].vibe
    return to_vibe(vibe_tag)


def listing_vector_for(listing: ListingVibes) -> VibeVector | None:
    """Resolve a listing's vibe vector.

    Uses the stored vector when there is one, otherwise a one-hot vector on the
    listing's top vibe, otherwise None.
    """
    if listing.vibe_vector:
        return {v: float(listing.vibe_vector.get(v.value, 0.0)) for v in VIBES}
    top = top_vibe_for_listing(listing.vibe_top, listing.vibe_tag)
    if top is None:
        return None
    return {v: 1.0 if v is top else 0.0 for v in VIBES}


def build_buyer_profile(
    events: Iterable[SwipeEvent],
    listings: Mapping[int, ListingVibes],
) -> BuyerVibeProfile:
    """Aggregate a buyer's stored swipes, resolving each listing to its top vibe.

    Swipes on listings that are missing or have no vibe carry no signal.
    """
    swipes = []
    for event in events:
        listing = listings.get(event.listing_id)
        vibe = top_vibe_for_listing(listing.vibe_top, listing.vibe_tag) if listing else None
        swipes.append(VibeSwipe(vibe=vibe.value if vibe else None, action=event.action))
    return compute_buyer_vibe_vector(swipes)


def build_talk_track(top_buyer_vibe: Vibe | None) -> str:
    """Agent pitch line for a buyer's dominant vibe."""
    if top_buyer_vibe is None:
        return EMERGING_BUYER_TALK_TRACK
    definition = VIBE_DEFINITIONS[top_buyer_vibe]
    keywords = ", ".join(definition.keywords[:TALK_TRACK_KEYWORDS])
    return (
        f"This buyer is {top_buyer_vibe.value}. Pitch {definition.copy_hook}. "
        f"Show them listings that feel {keywords}."
    )


def _has_signal(profile: BuyerVibeProfile) -> bool:
    return any(weight > 0 for weight in profile.vector.values())


def evaluate_lead(
    action: SwipeAction,
    buyer_profile: BuyerVibeProfile,
    listing: ListingVibes,
) -> LeadDecision:
    """Score a swipe against a listing and decide whether it warrants a lead.

    A lead is created for any save, or when the match score reaches
    LEAD_MATCH_THRESHOLD. It is hot at HOT_LEAD_THRESHOLD.
    """
    listing_vector = listing_vector_for(listing)
    match_score = compute_vector_match_score(buyer_profile.vector, listing_vector)

    if listing.vibe_top:
        top_listing_vibes = list(listing.vibe_top)
    else:
        top = top_vibe_for_listing(None, listing.vibe_tag)
        top_listing_vibes = [VibeScore(vibe=top, score=1.0)] if top else []

    top_buyer_vibe = buyer_profile.top_vibes[0].vibe if _has_signal(buyer_profile) else None
    create_lead = action == SwipeAction.SAVE or match_score >= LEAD_MATCH_THRESHOLD

    decision = LeadDecision(
        match_score=match_score,
        create_lead=create_lead,
        hot_lead=match_score >= HOT_LEAD_THRESHOLD,
        buyer_vector=buyer_profile.vector,
        listing_vector=listing_vector,
        top_buyer_vibes=buyer_profile.top_vibes,
        top_listing_vibes=top_listing_vibes,
        talk_track=build_talk_track(top_buyer_vibe),
        avoid_list=list(VIBE_DEFINITIONS[top_buyer_vibe].forbidden_changes)
        if top_buyer_vibe
        else [],
    )
    if create_lead:
        logger.info(
            "lead_warranted",
            listing_id=listing.listing_id,
            match_score=match_score,
            hot=decision.hot_lead,
            top_buyer_vibe=top_buyer_vibe.value if top_buyer_vibe else None,
        )
    return decision
