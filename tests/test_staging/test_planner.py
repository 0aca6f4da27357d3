"""Tests for catalog-based staging plans."""

import json
from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from taste_to_lead.staging.planner import (
    UNKNOWN_ITEMS_ERROR,
    Catalog,
    CatalogItem,
    RoomInput,
    audit_plan,
    choose_rug_size,
    generate_heuristic_plan,
    load_catalog,
    validate_plan_against_catalog,
)

RUG_SIZES = [(60, 96), (96, 120), (108, 144)]


def _item(item_id: str, category: str, **fields: Any) -> dict[str, Any]:
    return {"id": item_id, "category": category, "name": item_id.replace("-", " "), **fields}


CATALOG_DATA: dict[str, Any] = {
    "version": "test-1",
    "allowed_room_types": ["living_room", "bedroom"],
    "allowed_vibes": ["Purist", "Monarch"],
    "categories": ["rug", "lighting_floor", "wall_art", "drapes", "plant", "accent_chair"],
    "items": [
        _item(
            "rug-purist",
            "rug",
            vibe_tags=["Purist"],
            style_tags=["minimal", "calm"],
            palette=["white", "oat"],
            sizes_in=RUG_SIZES,
        ),
        _item("rug-monarch", "rug", vibe_tags=["Monarch"], palette=["gold"], sizes_in=[[60, 96]]),
        _item(
            "lamp-arc",
            "lighting_floor",
            vibe_tags=["Purist"],
            style_tags=["minimal"],
            notes="Arc over the reading chair.",
        ),
        _item("lamp-brass", "lighting_table", vibe_tags=["Monarch"], palette=["gold"]),
        _item("art-line", "wall_art", vibe_tags=["Purist"], palette=["oat"]),
        _item("mirror-gilt", "mirror", vibe_tags=["Monarch"], palette=["gold"]),
        _item("drapes-linen", "drapes", vibe_tags=["Naturalist"], style_tags=["calm"]),
        _item("plant-fig", "plant", palette=["green"], notes="Fiddle fig by the window."),
        _item("chair-boucle", "accent_chair", vibe_tags=["Purist"], notes="Angle toward sofa."),
        _item("table-travertine", "coffee_table", vibe_tags=["Purist"]),
    ],
}


@pytest.fixture
def catalog() -> Catalog:
    return Catalog.model_validate(CATALOG_DATA)


def _room(vibe: str = "Purist", length: float = 15, width: float = 13) -> RoomInput:
    return RoomInput.model_validate(
        {
            "room_type": "living_room",
            "vibe": vibe,
            "dimensions_ft": {"length": length, "width": width, "ceiling_height": 9},
        }
    )


class TestLoadCatalog:
    def test_reads_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(CATALOG_DATA), encoding="utf-8")

        catalog = load_catalog(path)

        assert catalog.version == "test-1"
        assert len(catalog.items) == len(CATALOG_DATA["items"])
        assert catalog.items[0].sizes_in == RUG_SIZES

    def test_rejects_items_without_id(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"version": "x", "items": [{"category": "rug"}]}))
        with pytest.raises(ValidationError):
            load_catalog(path)


class TestChooseRugSize:
    @pytest.mark.parametrize(
        ("length", "width", "index", "tier"),
        [
            (9, 11, 0, "small"),
            (12, 11, 1, "medium"),
            (13, 13, 1, "medium"),
            (16, 14, 2, "large"),
            (15, 12, 2, "large"),
        ],
    )
    def test_size_follows_room(self, length: float, width: float, index: int, tier: str) -> None:
        rug = CatalogItem(id="r", category="rug", name="r", sizes_in=RUG_SIZES)
        size = choose_rug_size(rug, length, width)
        assert (size.index, size.tier) == (index, tier)
        assert size.size == RUG_SIZES[index]

    def test_clamps_to_available_sizes(self) -> None:
        rug = CatalogItem(id="r", category="rug", name="r", sizes_in=[(60, 96)])
        size = choose_rug_size(rug, 12, 12)
        assert size == ((60, 96), 0, "medium")

    def test_rug_without_sizes(self) -> None:
        rug = CatalogItem(id="r", category="rug", name="r")
        assert choose_rug_size(rug, 20, 20) == (None, 0, "small")


class TestGenerateHeuristicPlan:
    def test_selects_required_then_optional_items(self, catalog: Catalog) -> None:
        plan = generate_heuristic_plan(_room(), catalog)

        assert [s.item_id for s in plan.selected_items] == [
            "rug-purist",
            "lamp-arc",
            "art-line",
            "drapes-linen",
            "plant-fig",
            "chair-boucle",
        ]
        assert plan.constraints.allowed_item_ids_only
        assert plan.constraints.no_new_items
        assert plan.room.dimensions_ft.length == 15

    def test_reasons(self, catalog: Catalog) -> None:
        plan = generate_heuristic_plan(_room(), catalog)
        reasons = {s.item_id: s.reason for s in plan.selected_items}

        assert reasons["rug-purist"] == (
            "Selected for Purist; rug size 108x144 in (index 2, large tier)."
        )
        assert reasons["lamp-arc"] == "Selected as direct vibe match for Purist."
        assert reasons["drapes-linen"] == "Selected as best fallback by style/palette overlap."

    def test_placement_zones(self, catalog: Catalog) -> None:
        plan = generate_heuristic_plan(_room(), catalog)
        zones = {p.item_id: p.zone for p in plan.placement_plan}

        assert zones == {
            "rug-purist": "Center",
            "lamp-arc": "Corner 1",
            "art-line": "Wall A",
            "drapes-linen": "Window Wall",
            "plant-fig": "Corner 2",
            "chair-boucle": "Corner 2",
        }

    def test_position_notes(self, catalog: Catalog) -> None:
        notes = {
            p.item_id: p.position_notes
            for p in generate_heuristic_plan(_room(length=9, width=11), catalog).placement_plan
        }

        assert notes["rug-purist"] == "Center anchor rug using 60x96 in (index 0, small tier)."
        assert notes["art-line"] == "Primary art focal point on Wall A, centered at eye level."
        assert notes["drapes-linen"] == "Mount high and wide across window wall to elongate height."
        assert notes["lamp-arc"] == "Arc over the reading chair."

    def test_vibe_changes_selection(self, catalog: Catalog) -> None:
        plan = generate_heuristic_plan(_room(vibe="Monarch"), catalog)
        selected = [s.item_id for s in plan.selected_items]

        assert selected[:3] == ["rug-monarch", "lamp-brass", "mirror-gilt"]
        zones = {p.item_id: p.zone for p in plan.placement_plan}
        assert zones["mirror-gilt"] == "Wall B"

    def test_equal_scores_pick_lexically_smaller_id(self) -> None:
        catalog = Catalog.model_validate(
            {
                "version": "tie",
                "items": [
                    _item("rug-b", "rug", vibe_tags=["Nomad"]),
                    _item("rug-a", "rug", vibe_tags=["Nomad"]),
                ],
            }
        )
        plan = generate_heuristic_plan(_room(vibe="Nomad"), catalog)
        assert [s.item_id for s in plan.selected_items] == ["rug-a"]

    def test_large_items_take_free_zones(self) -> None:
        catalog = Catalog.model_validate(
            {
                "version": "zones",
                "items": [
                    _item("rug", "rug"),
                    _item("lamp", "lighting_floor"),
                    _item("mirror", "mirror"),
                    _item("chair", "accent_chair"),
                    _item("table", "coffee_table"),
                ],
            }
        )
        plan = generate_heuristic_plan(_room(), catalog)
        zones = {p.item_id: p.zone for p in plan.placement_plan}

        assert zones == {
            "rug": "Center",
            "lamp": "Corner 1",
            "mirror": "Wall B",
            "chair": "Corner 2",
            "table": "Sofa Zone",
        }

    def test_is_deterministic(self, catalog: Catalog) -> None:
        assert generate_heuristic_plan(_room(), catalog) == generate_heuristic_plan(
            _room(), catalog
        )

    def test_generated_plan_validates_and_audits_clean(self, catalog: Catalog) -> None:
        plan = generate_heuristic_plan(_room(), catalog)

        assert validate_plan_against_catalog(plan, catalog).ok
        assert audit_plan(plan.model_dump(), catalog) == []


class TestValidatePlanAgainstCatalog:
    def test_unknown_items(self, catalog: Catalog) -> None:
        plan = {
            "selected_items": [{"item_id": "rug-purist"}, {"item_id": "sofa-ghost"}],
            "placement_plan": [{"item_id": "sofa-ghost"}, {"item_id": "lamp-ufo"}],
        }

        result = validate_plan_against_catalog(plan, catalog)

        assert not result.ok
        assert result.errors == [UNKNOWN_ITEMS_ERROR]
        assert result.invalid_item_ids == ["sofa-ghost", "lamp-ufo"]

    def test_not_an_object(self, catalog: Catalog) -> None:
        result = validate_plan_against_catalog(["rug-purist"], catalog)
        assert result.errors == ["Plan must be an object"]

    def test_malformed_sections(self, catalog: Catalog) -> None:
        result = validate_plan_against_catalog(
            {"selected_items": "rug-purist", "placement_plan": [{"zone": "Center"}]}, catalog
        )

        assert result.errors == [
            "selected_items must be an array",
            "placement_plan entries must include item_id",
        ]
        assert result.invalid_item_ids == []


class TestAuditPlan:
    def test_reports_every_problem(self, catalog: Catalog) -> None:
        plan = {
            "selected_items": [
                {"item_id": "lamp-arc"},
                {"item_id": "lamp-arc"},
                {"item_id": "chair-boucle"},
                {"item_id": "sofa-ghost"},
            ],
            "placement_plan": [
                {"item_id": "lamp-arc", "zone": "Corner 1"},
                {"item_id": "chair-boucle", "zone": "Corner 1"},
                {"item_id": "plant-fig", "zone": "Corner 2"},
            ],
        }

        assert audit_plan(plan, catalog) == [
            "Unknown item_id in plan: sofa-ghost",
            "Duplicate selected_items item_id: lamp-arc",
            "placement_plan item_id not present in selected_items: plant-fig",
            "Missing required category: rug",
            "Missing required category: wall_art or mirror",
            'Large-item zone collision in "Corner 1": lamp-arc and chair-boucle',
        ]

    def test_small_items_may_share_zones(self, catalog: Catalog) -> None:
        plan = {
            "selected_items": [
                {"item_id": "rug-purist"},
                {"item_id": "lamp-brass"},
                {"item_id": "art-line"},
                {"item_id": "plant-fig"},
            ],
            "placement_plan": [
                {"item_id": "rug-purist", "zone": "Center"},
                {"item_id": "lamp-brass", "zone": "Corner 1"},
                {"item_id": "plant-fig", "zone": "Corner 1"},
                {"item_id": "art-line", "zone": "Wall A"},
            ],
        }
        assert audit_plan(plan, catalog) == []
