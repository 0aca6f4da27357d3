"""The vibe taxonomy: eight fixed interior-design archetypes and their metadata."""

from types import MappingProxyType
from typing import Final

from taste_to_lead.models import Vibe, VibeDefinition

VIBES: Final[tuple[Vibe, ...]] = tuple(Vibe)


class UnknownVibeError(KeyError):
    """Raised when a vibe name is not part of the taxonomy."""

    def __init__(self, name: object) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown vibe: {self.name!r}"


_DEFINITIONS: dict[Vibe, VibeDefinition] = {
    Vibe.PURIST: VibeDefinition(
        keywords=(
            "minimalist",
            "white",
            "clean lines",
            "seamless",
            "hidden storage",
            "zero clutter",
            "monochromatic",
        ),
        visual_cues=(
            "all-white interiors",
            "handleless cabinetry",
            "negative space",
            "matte natural finishes",
        ),
        psychology=("discipline", "clarity", "focus"),
        copy_hook="clean, clear, and mentally calm",
        forbidden_changes=("visual clutter", "busy patterns", "heavy ornamentation"),
        staging_do=(
            "keep compositions minimal",
            "use soft neutrals and light oak",
            "preserve clear walkways",
        ),
        staging_dont=(
            "over-accessorize",
            "mix too many colors",
            "introduce visually heavy furniture",
        ),
        prompt_seeds=("japandi minimalism", "museum-clean styling", "soft diffused daylight"),
    ),
    Vibe.INDUSTRIALIST: VibeDefinition(
        keywords=(
            "loft",
            "warehouse",
            "exposed brick",
            "concrete",
            "steel beams",
            "ductwork",
            "raw",
            "factory",
        ),
        visual_cues=("high ceilings", "metal finishes", "open mechanicals", "large grid windows"),
        psychology=("authenticity", "strength", "bones"),
        copy_hook="raw character with confident urban edge",
        forbidden_changes=(
            "hiding structural elements",
            "ornate traditional decor",
            "overly polished finishes",
        ),
        staging_do=(
            "highlight existing raw textures",
            "layer leather and steel accents",
            "use moody contrast",
        ),
        staging_dont=(
            "hide industrial bones",
            "use ornate traditional furniture",
            "over-polish surfaces",
        ),
        prompt_seeds=(
            "urban loft styling",
            "charcoal and rust palette",
            "editorial architectural lighting",
        ),
    ),
    Vibe.MONARCH: VibeDefinition(
        keywords=(
            "penthouse",
            "gold",
            "marble",
            "velvet",
            "crystal",
            "grand",
            "opulent",
            "skyline",
        ),
        visual_cues=(
            "black and gold contrast",
            "statement chandeliers",
            "high-gloss stone",
            "grand scale pieces",
        ),
        psychology=("status", "power", "dominance"),
        copy_hook="elevated luxury with status-forward impact",
        forbidden_changes=(
            "budget-looking finishes",
            "small-scale casual decor",
            "flat low-contrast styling",
        ),
        staging_do=(
            "use premium textures",
            "compose with bold symmetry",
            "add elegant statement lighting",
        ),
        staging_dont=(
            "use budget-looking decor",
            "crowd the floor plan",
            "downgrade material richness",
        ),
        prompt_seeds=(
            "modern luxury opulence",
            "black gold emerald accents",
            "high-contrast glam lighting",
        ),
    ),
    Vibe.FUTURIST: VibeDefinition(
        keywords=("smart home", "tech", "neon", "led", "glass", "chrome", "sleek", "automated"),
        visual_cues=(
            "integrated lighting",
            "reflective surfaces",
            "clean geometry",
            "high-tech accents",
        ),
        psychology=("innovation", "speed", "efficiency"),
        copy_hook="future-ready living with precision and control",
        forbidden_changes=("rustic motifs", "traditional ornament", "visual noise"),
        staging_do=(
            "use sleek silhouettes",
            "introduce integrated LED mood lighting",
            "favor glossy controlled finishes",
        ),
        staging_dont=(
            "add rustic decor",
            "introduce visual clutter",
            "mix vintage traditional motifs",
        ),
        prompt_seeds=(
            "high-tech residence",
            "cool white and chrome palette",
            "precision cinematic lighting",
        ),
    ),
    Vibe.NATURALIST: VibeDefinition(
        keywords=(
            "sanctuary",
            "biophilic",
            "plants",
            "green",
            "retreat",
            "wood",
            "stone",
            "natural light",
        ),
        visual_cues=(
            "organic textures",
            "living greenery",
            "earthy tones",
            "indoor-outdoor continuity",
        ),
        psychology=("grounding", "peace", "wellness"),
        copy_hook="restorative, organic comfort that feels grounded",
        forbidden_changes=(
            "harsh artificial lighting",
            "synthetic-heavy surfaces",
            "cold sterile palettes",
        ),
        staging_do=(
            "layer natural materials",
            "add biophilic greenery",
            "use warm daylight mood",
        ),
        staging_dont=(
            "overuse synthetic glossy finishes",
            "add harsh neon tones",
            "block natural light paths",
        ),
        prompt_seeds=(
            "biophilic sanctuary",
            "sage terracotta and raw wood",
            "calm breathable atmosphere",
        ),
    ),
    Vibe.CURATOR: VibeDefinition(
        keywords=("art", "gallery", "eclectic", "bold", "color", "statement", "unique", "mural"),
        visual_cues=(
            "gallery walls",
            "sculptural pieces",
            "mixed eras",
            "expressive color composition",
        ),
        psychology=("expression", "storytelling", "uniqueness"),
        copy_hook="high-personality spaces that tell a story",
        forbidden_changes=(
            "generic cookie-cutter styling",
            "muted monotony",
            "removing statement pieces",
        ),
        staging_do=(
            "anchor with statement art",
            "mix textures intentionally",
            "create focal vignettes",
        ),
        staging_dont=(
            "flatten into generic minimalism",
            "overmatch all furniture",
            "remove personality cues",
        ),
        prompt_seeds=(
            "editorial eclectic interior",
            "gallery-forward staging",
            "bold collected styling",
        ),
    ),
    Vibe.CLASSICIST: VibeDefinition(
        keywords=(
            "historic",
            "traditional",
            "estate",
            "molding",
            "library",
            "wood paneling",
            "heritage",
        ),
        visual_cues=("symmetry", "antique accents", "dark woods", "timeless molding details"),
        psychology=("legacy", "history", "respect"),
        copy_hook="timeless elegance with heritage confidence",
        forbidden_changes=(
            "ultra-modern disruptions",
            "novelty finishes",
            "breaking formal balance",
        ),
        staging_do=(
            "maintain formal symmetry",
            "use timeless upholstery and woods",
            "honor architectural heritage",
        ),
        staging_dont=(
            "introduce ultra-futuristic decor",
            "break period harmony",
            "use novelty materials",
        ),
        prompt_seeds=(
            "traditional heritage interior",
            "navy cream mahogany tones",
            "refined classic composition",
        ),
    ),
    Vibe.NOMAD: VibeDefinition(
        keywords=(
            "boho",
            "travel",
            "collected",
            "rugs",
            "texture",
            "earth tones",
            "global",
            "warm",
        ),
        visual_cues=(
            "layered textiles",
            "handcrafted decor",
            "earthy palette",
            "relaxed low-profile seating",
        ),
        psychology=("freedom", "warmth", "experience"),
        copy_hook="warm, traveled, and lived-in global comfort",
        forbidden_changes=(
            "overly formal layouts",
            "sterile minimalism",
            "single-texture flatness",
        ),
        staging_do=(
            "layer textiles and artisanal pieces",
            "use warm earthy tones",
            "build relaxed lived-in vignettes",
        ),
        staging_dont=(
            "over-formalize the space",
            "use sterile monochrome styling",
            "remove global character",
        ),
        prompt_seeds=(
            "global boho interior",
            "ochre sand and deep red accents",
            "warm ambient mood",
        ),
    ),
}

VIBE_DEFINITIONS: Final = MappingProxyType(_DEFINITIONS)


def is_vibe(name: object) -> bool:
    """Check whether a value names one of the eight vibes."""
    if isinstance(name, Vibe):
        return True
    return isinstance(name, str) and name in _VIBE_BY_NAME


def to_vibe(name: object) -> Vibe | None:
    """Resolve a vibe name to its enum member, or None when it is not a vibe."""
    if isinstance(name, Vibe):
        return name
    if isinstance(name, str):
        return _VIBE_BY_NAME.get(name)
    return None


def get_vibe_definition(name: str | Vibe) -> VibeDefinition:
    """Look up a vibe definition.

    Raises:
        UnknownVibeError: If the name is not one of the eight vibes.
    """
    vibe = to_vibe(name)
    if vibe is None:
        raise UnknownVibeError(name)
    return VIBE_DEFINITIONS[vibe]


_VIBE_BY_NAME: Final[dict[str, Vibe]] = {v.value: v for v in VIBES}
