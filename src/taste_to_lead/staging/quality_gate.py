"""Rule-based quality gate for staging prompts and provider output.

Both checks return a list of flag strings; an empty list means the item passed.
"""

from collections.abc import Mapping
from typing import Any, Final, NamedTuple

from taste_to_lead.staging.prompts import HARD_CONSTRAINT_BLOCK


class RequiredConcept(NamedTuple):
    """A concept the prompt must express: every token in ``all_of`` and one of ``any_of``."""

    name: str
    all_of: tuple[str, ...]
    any_of: tuple[str, ...]


REQUIRED_CONCEPTS: Final = (
    RequiredConcept("camera_preservation", ("camera",), ("angle", "perspective", "viewpoint")),
    RequiredConcept(
        "architecture_preservation",
        ("preserve",),
        ("walls", "windows", "doors", "ceiling", "built-ins"),
    ),
    RequiredConcept("no_renovation", ("do not",), ("renovate", "remodel", "structural")),
    RequiredConcept(
        "allowed_additions_only",
        ("only",),
        ("furniture", "decor", "rugs", "lighting", "art", "plants"),
    ),
)

# Matched case-insensitively against the positive prompt only
RENOVATION_TERMS: Final = (
    "knock down wall",
    "knock down walls",
    "add skylight",
    "new skylight",
    "change cabinetry",
    "upgrade finishes",
    "demolition",
    "remove wall",
    "add wall",
    "new window",
    "new door",
    "change flooring",
    "change layout",
)

# The negative prompt must carry at least one of these
NEGATIVE_STRICTNESS_MARKERS: Final = ("no architectural changes", "change layout")


def _concept_satisfied(concept: RequiredConcept, text: str) -> bool:
    return all(token in text for token in concept.all_of) and any(
        token in text for token in concept.any_of
    )


def assess_prompt_for_banned_terms(prompt: str, negative_prompt: str) -> list[str]:
    """Check a prompt pair before it is sent to the provider.

    Flags:
        missing_hard_constraint_block: the hard-constraint block is not present verbatim.
        missing_required_concept:<name>: a required concept's tokens are not all present.
        renovation_keyword_in_prompt:<term>: a renovation term appears in the positive prompt.
        negative_prompt_not_strict_enough: the negative prompt mentions neither
            "no architectural changes" nor "change layout".
    """
    flags: list[str] = []
    lower_prompt = prompt.lower()
    lower_negative = negative_prompt.lower()

    if HARD_CONSTRAINT_BLOCK not in prompt:
        flags.append("missing_hard_constraint_block")

    for concept in REQUIRED_CONCEPTS:
        if not _concept_satisfied(concept, lower_prompt):
            flags.append(f"missing_required_concept:{concept.name}")

    for term in RENOVATION_TERMS:
        if term in lower_prompt:
            flags.append(f"renovation_keyword_in_prompt:{term}")

    if not any(marker in lower_negative for marker in NEGATIVE_STRICTNESS_MARKERS):
        flags.append("negative_prompt_not_strict_enough")

    return flags


def assess_output_metadata_if_available(meta: Mapping[str, Any] | None) -> list[str]:
    """Check whatever metadata the provider returned with an output image.

    No metadata means no signal, which passes.
    """
    if not meta:
        return []
    flags: list[str] = []
    if meta.get("safety_blocked"):
        flags.append("provider_safety_blocked")
    if meta.get("geometry_changed") is True:
        flags.append("geometry_change_suspected")
    return flags
