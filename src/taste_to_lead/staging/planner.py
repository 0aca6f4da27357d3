"""Deterministic furniture planning for a staged room.

Picks decor items from a product catalog for a room and vibe, sizes the rug
to the room, and assigns each item a placement zone. Plans only ever name
catalog items, so they can be checked against the catalog before use.
"""

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Final, Literal, NamedTuple

from pydantic import BaseModel, Field

from taste_to_lead.logging import get_logger

logger = get_logger(__name__)

Zone = Literal[
    "Wall A",
    "Wall B",
    "Wall C",
    "Wall D",
    "Center",
    "Corner 1",
    "Corner 2",
    "Window Wall",
    "Sofa Zone",
    "Bed Zone",
]

RugTier = Literal["small", "medium", "large"]

# Items that claim a zone; two of them never share one
LARGE_CATEGORIES: Final = frozenset(
    {"rug", "coffee_table", "accent_chair", "lighting_floor", "mirror"}
)

OPTIONAL_CATEGORIES: Final = ("drapes", "plant", "accent_chair", "coffee_table", "decor_objects")

MAX_PLAN_ITEMS: Final = 6

VIBE_MATCH_SCORE: Final = 100
STYLE_MATCH_SCORE: Final = 3
PALETTE_MATCH_SCORE: Final = 2

UNKNOWN_ITEMS_ERROR: Final = "Plan contains item_id values not present in catalog"


class RoomDimensions(BaseModel):
    length: float
    width: float
    ceiling_height: float


class RoomInput(BaseModel):
    """Room to plan for. Dimensions are in feet."""

    room_type: str
    vibe: str
    dimensions_ft: RoomDimensions


class CatalogItem(BaseModel):
    id: str
    category: str
    name: str
    vibe_tags: list[str] = Field(default_factory=list)
    style_tags: list[str] = Field(default_factory=list)
    palette: list[str] = Field(default_factory=list)
    materials: list[str] = Field(default_factory=list)
    price_tier: str = ""
    # (width, length) in inches, smallest first
    sizes_in: list[tuple[int, int]] = Field(default_factory=list)
    notes: str = ""


class Catalog(BaseModel):
    version: str
    allowed_room_types: list[str] = Field(default_factory=list)
    allowed_vibes: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    items: list[CatalogItem]

    def by_category(self, *categories: str) -> list[CatalogItem]:
        return [item for c in categories for item in self.items if item.category == c]


class SelectedItem(BaseModel):
    item_id: str
    reason: str


class Placement(BaseModel):
    item_id: str
    zone: Zone
    position_notes: str


class PlanConstraints(BaseModel):
    allowed_item_ids_only: bool = True
    no_new_items: bool = True


class PlannedRoom(BaseModel):
    room_type: str
    dimensions_ft: RoomDimensions


class StagingPlan(BaseModel):
    """Items chosen for a room and where each one goes."""

    room: PlannedRoom
    vibe: str
    selected_items: list[SelectedItem]
    placement_plan: list[Placement]
    constraints: PlanConstraints = Field(default_factory=PlanConstraints)


class PlanValidation(BaseModel):
    ok: bool
    errors: list[str]
    invalid_item_ids: list[str]


class RugSize(NamedTuple):
    size: tuple[int, int] | None
    index: int
    tier: RugTier


def load_catalog(path: str | Path) -> Catalog:
    """Read a catalog JSON file.

    Raises:
        OSError: If the file can't be read.
        pydantic.ValidationError: If the file isn't a valid catalog.
    """
    return Catalog.model_validate_json(Path(path).read_text(encoding="utf-8-sig"))


def choose_rug_size(item: CatalogItem, length: float, width: float) -> RugSize:
    """Pick a rug size index from the room's shorter side.

    Under 10ft is small, up to 13ft medium, larger rooms get the large size.
    Rooms at least 14x12 always get the large size when the rug has one.
    """
    if not item.sizes_in:
        return RugSize(None, 0, "small")

    min_side = min(length, width)
    if min_side < 10:
        wanted, tier = 0, "small"
    elif min_side <= 13:
        wanted, tier = 1, "medium"
    else:
        wanted, tier = 2, "large"

    if length >= 14 and width >= 12 and len(item.sizes_in) > 2:
        wanted, tier = 2, "large"

    index = min(wanted, len(item.sizes_in) - 1)
    return RugSize(item.sizes_in[index], index, tier)


def _describe_rug(rug: RugSize | None) -> str:
    size_text = f"{rug.size[0]}x{rug.size[1]} in" if rug and rug.size else "best available size"
    index_text = f"index {rug.index}" if rug else "index n/a"
    tier = rug.tier if rug else "small"
    return f"{size_text} ({index_text}, {tier} tier)"


def _default_zone(category: str) -> Zone:
    if category in ("rug", "coffee_table"):
        return "Center"
    if category == "drapes":
        return "Window Wall"
    if category == "wall_art":
        return "Wall A"
    if category == "mirror":
        return "Wall B"
    if category in ("lighting_floor", "lighting_table", "plant", "accent_chair"):
        return "Corner 1"
    return "Wall C"


def _zone_candidates(category: str, preferred: Zone) -> list[Zone]:
    candidates: dict[str, list[Zone]] = {
        "accent_chair": ["Corner 2", "Sofa Zone", "Corner 1"],
        "lighting_floor": ["Corner 1", "Corner 2"],
        "plant": ["Corner 2", "Corner 1"],
        "coffee_table": ["Sofa Zone", "Center"],
        "mirror": ["Wall B", "Wall C", "Wall D"],
    }
    return candidates.get(category, [preferred])


def _score_item(item: CatalogItem, vibe: str, style: set[str], palette: set[str]) -> int:
    score = VIBE_MATCH_SCORE if vibe in item.vibe_tags else 0
    score += STYLE_MATCH_SCORE * sum(1 for tag in item.style_tags if tag in style)
    score += PALETTE_MATCH_SCORE * sum(1 for color in item.palette if color in palette)
    return score


def _pick_best(
    items: Iterable[CatalogItem],
    vibe: str,
    style: set[str],
    palette: set[str],
    exclude: set[str],
) -> CatalogItem | None:
    ranked = sorted(
        (item for item in items if item.id not in exclude),
        key=lambda item: (-_score_item(item, vibe, style, palette), item.id),
    )
    return ranked[0] if ranked else None


def generate_heuristic_plan(room: RoomInput, catalog: Catalog) -> StagingPlan:
    """Build a staging plan for a room from catalog items only.

    One rug, one light and one wall piece are chosen first, then optional
    categories until the plan holds six items. Items are ranked by vibe tag,
    then by overlap with the style tags and palette of the vibe's catalog
    items; equal scores go to the lexically smaller id.
    """
    vibe = room.vibe
    vibe_items = [item for item in catalog.items if vibe in item.vibe_tags]
    style = {tag for item in vibe_items for tag in item.style_tags}
    palette = {color for item in vibe_items for color in item.palette}

    selected: list[CatalogItem] = []
    selected_ids: set[str] = set()

    def take(candidate: CatalogItem | None) -> CatalogItem | None:
        if candidate is not None and candidate.id not in selected_ids:
            selected.append(candidate)
            selected_ids.add(candidate.id)
        return candidate

    rug = take(_pick_best(catalog.by_category("rug"), vibe, style, palette, selected_ids))
    for pool in (("lighting_floor", "lighting_table"), ("wall_art", "mirror")):
        take(_pick_best(catalog.by_category(*pool), vibe, style, palette, selected_ids))
    for category in OPTIONAL_CATEGORIES:
        take(_pick_best(catalog.by_category(category), vibe, style, palette, selected_ids))
        if len(selected) >= MAX_PLAN_ITEMS:
            break

    rug_size = (
        choose_rug_size(rug, room.dimensions_ft.length, room.dimensions_ft.width)
        if rug
        else None
    )

    selected_items: list[SelectedItem] = []
    for item in selected:
        if item.category == "rug":
            reason = f"Selected for {vibe}; rug size {_describe_rug(rug_size)}."
        elif vibe in item.vibe_tags:
            reason = f"Selected as direct vibe match for {vibe}."
        else:
            reason = "Selected as best fallback by style/palette overlap."
        selected_items.append(SelectedItem(item_id=item.id, reason=reason))

    used_large_zones: set[Zone] = set()
    placements: list[Placement] = []
    for item in selected:
        zone = _default_zone(item.category)
        if item.category not in ("rug", "drapes", "wall_art") and (
            item.category in LARGE_CATEGORIES or item.category == "plant"
        ):
            candidates = _zone_candidates(item.category, zone)
            zone = next((c for c in candidates if c not in used_large_zones), candidates[0])
        if item.category in LARGE_CATEGORIES:
            used_large_zones.add(zone)

        if item.category == "rug":
            notes = f"Center anchor rug using {_describe_rug(rug_size)}."
        elif item.category == "wall_art":
            notes = "Primary art focal point on Wall A, centered at eye level."
        elif item.category == "drapes":
            notes = "Mount high and wide across window wall to elongate height."
        else:
            notes = item.notes
        placements.append(Placement(item_id=item.id, zone=zone, position_notes=notes))

    logger.info(
        "staging_plan_generated",
        vibe=vibe,
        room_type=room.room_type,
        item_count=len(selected),
        catalog_version=catalog.version,
    )
    return StagingPlan(
        room=PlannedRoom(room_type=room.room_type, dimensions_ft=room.dimensions_ft),
        vibe=vibe,
        selected_items=selected_items,
        placement_plan=placements,
    )


def _entry_ids(entries: list[Any], field: str, errors: list[str]) -> list[str]:
    ids = []
    for entry in entries:
        item_id = entry.get("item_id") if isinstance(entry, Mapping) else None
        if not isinstance(item_id, str):
            errors.append(f"{field} entries must include item_id")
            continue
        ids.append(item_id)
    return ids


def validate_plan_against_catalog(plan: Any, catalog: Catalog) -> PlanValidation:
    """Check that a plan, generated or hand-written, names only catalog items."""
    if isinstance(plan, StagingPlan):
        plan = plan.model_dump()
    if not isinstance(plan, Mapping):
        return PlanValidation(ok=False, errors=["Plan must be an object"], invalid_item_ids=[])

    known = {item.id for item in catalog.items}
    errors: list[str] = []
    referenced: list[str] = []
    for field in ("selected_items", "placement_plan"):
        entries = plan.get(field)
        if not isinstance(entries, list):
            errors.append(f"{field} must be an array")
            continue
        referenced.extend(_entry_ids(entries, field, errors))

    invalid = list(dict.fromkeys(i for i in referenced if i not in known))
    if invalid:
        errors.append(UNKNOWN_ITEMS_ERROR)
    return PlanValidation(ok=not errors, errors=errors, invalid_item_ids=invalid)


def audit_plan(plan: Mapping[str, Any], catalog: Catalog) -> list[str]:
    """Stricter checks on a plan file. Returns the problems found, empty when clean.

    Flags unknown items, duplicate selections, placements of unselected items,
    a missing rug, light or wall piece, and two large items in one zone.
    """
    by_id = {item.id: item for item in catalog.items}
    selected = plan.get("selected_items")
    placement = plan.get("placement_plan")
    selected = selected if isinstance(selected, list) else []
    placement = placement if isinstance(placement, list) else []

    def ids(entries: list[Any]) -> list[str]:
        return [
            e["item_id"]
            for e in entries
            if isinstance(e, Mapping) and isinstance(e.get("item_id"), str) and e["item_id"]
        ]

    selected_ids = ids(selected)
    placement_ids = ids(placement)
    errors = [
        f"Unknown item_id in plan: {i}" for i in [*selected_ids, *placement_ids] if i not in by_id
    ]

    seen: set[str] = set()
    for item_id in selected_ids:
        if item_id in seen:
            errors.append(f"Duplicate selected_items item_id: {item_id}")
        seen.add(item_id)

    errors.extend(
        f"placement_plan item_id not present in selected_items: {i}"
        for i in placement_ids
        if i not in seen
    )

    categories = {by_id[i].category for i in selected_ids if i in by_id}
    if "rug" not in categories:
        errors.append("Missing required category: rug")
    if not categories & {"lighting_floor", "lighting_table"}:
        errors.append("Missing required category: lighting_floor or lighting_table")
    if not categories & {"wall_art", "mirror"}:
        errors.append("Missing required category: wall_art or mirror")

    zone_owner: dict[str, str] = {}
    for entry in placement:
        if not isinstance(entry, Mapping):
            continue
        item_id, zone = entry.get("item_id"), entry.get("zone")
        if not isinstance(item_id, str) or not isinstance(zone, str):
            continue
        item = by_id.get(item_id)
        if item is None or item.category not in LARGE_CATEGORIES:
            continue
        owner = zone_owner.setdefault(zone, item_id)
        if owner != item_id:
            errors.append(f'Large-item zone collision in "{zone}": {owner} and {item_id}')

    return errors
