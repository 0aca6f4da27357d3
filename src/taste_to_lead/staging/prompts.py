"""Staging prompt construction.

Composes a vibe definition, the room context and a fixed hard-constraint
block into the positive/negative prompt pair sent to the image provider.
"""

from typing import Final

from taste_to_lead.logging import get_logger
from taste_to_lead.models import RoomType, StagingPrompt, Strictness, Vibe
from taste_to_lead.taxonomy import VIBE_DEFINITIONS, to_vibe

logger = get_logger(__name__)

# Must appear verbatim in every prompt; the quality gate checks for it.
HARD_CONSTRAINT_BLOCK: Final = (
    "EDIT the provided photo to virtually stage this exact room. "
    "Preserve camera viewpoint and lens exactly as captured. "
    "Do not change architecture, layout, room boundaries, or any structural surface. "
    "Add or remove movable furniture and decor only."
)

ALLOWED_ADDITIONS: Final = (
    "Allowed additions only: furniture, decor, textiles, lighting fixtures, wall art, "
    "plants, rugs, accessories."
)

NO_STRUCTURAL_CHANGE: Final = (
    "Do not modify floors, walls, windows, doors, ceiling, built-ins, cabinetry, "
    "or any structural element."
)

COMPOSITION: Final = (
    "Composition: photorealistic, natural lighting, interior photography, "
    "coherent scale, realistic shadows."
)

CHECKLIST_BLOCK: Final = (
    "Checklist: Preserve camera angle and perspective. "
    "Preserve walls, floors, ceiling, windows, doors, trim, built-ins. "
    "Do not repaint or change materials. "
    "Keep lighting natural and consistent with the original photo. "
    "Add staging items only; keep scale realistic. "
    "Photorealistic; realistic shadows; no surreal artifacts."
)

BASE_NEGATIVE_PROMPT: Final = (
    "renovation, remodel, construction, carpentry, new window, new door, remove wall, "
    "add wall, change flooring, change ceiling, change layout, built-in cabinetry, "
    "structural beams, demolition"
)

STRICT_NEGATIVE_SUFFIX: Final = (
    "ABSOLUTELY NO ARCHITECTURAL CHANGES, no perspective change, no lens change, "
    "no layout change, no structural change"
)

# Substituted for unknown vibe ids so one bad entry degrades instead of failing.
FALLBACK_VIBE: Final = Vibe.CLASSICIST


def build_staging_prompt(
    vibe_id: str | Vibe,
    room_type: RoomType | str,
    room_notes: str | None = None,
    strictness: Strictness = "normal",
) -> StagingPrompt:
    """Build the prompt pair for staging one room in one vibe.

    Args:
        vibe_id: Vibe to stage in. Unknown ids fall back to Classicist.
        room_type: Room being staged.
        room_notes: Optional free-text notes about the room.
        strictness: "strict" appends an emphatic no-architectural-change suffix
            to the negative prompt.

    Returns:
        The positive prompt and the negative prompt.
    """
    vibe = to_vibe(vibe_id)
    if vibe is None:
        logger.warning("unknown_vibe_fallback", vibe_id=str(vibe_id), fallback=FALLBACK_VIBE.value)
        vibe = FALLBACK_VIBE
    definition = VIBE_DEFINITIONS[vibe]
    room = room_type.value if isinstance(room_type, RoomType) else str(room_type)
    notes = room_notes.strip() if room_notes else ""

    parts = [
        HARD_CONSTRAINT_BLOCK,
        f"Room type: {room}.",
        f"Room notes: {notes}." if notes else "",
        f"Vibe: {vibe.value}.",
        f"Design principles: {', '.join(definition.psychology)}.",
        f"Furniture kit: {', '.join(definition.staging_do)}.",
        f"Visual keywords: {', '.join(definition.visual_cues)}.",
        ALLOWED_ADDITIONS,
        NO_STRUCTURAL_CHANGE,
        COMPOSITION,
        CHECKLIST_BLOCK,
    ]
    prompt = " ".join(part for part in parts if part)

    negative_terms = [BASE_NEGATIVE_PROMPT, *definition.forbidden_changes]
    if strictness == "strict":
        negative_terms.append(STRICT_NEGATIVE_SUFFIX)

    return StagingPrompt(prompt=prompt, negative_prompt=", ".join(negative_terms))
