import pytest
from pydantic import ValidationError

from geolayers.layers.models import Coordinate, GeometryLayer, PointMarker
from geolayers.layers.styles import IconOptions, PathOptions
from geolayers.notes.models import SourceRef
from geolayers.query.display_rules import (
    DEFAULT_DISPLAY_RULES,
    DisplayRule,
    DisplayRulesCache,
    apply_display_rules,
)


def _marker(tags) -> PointMarker:
    return PointMarker(source=SourceRef("n.md"), coordinate=Coordinate(1, 2), source_offset=3, source_line=0, tags=tags)


def test_default_rules():
    cache = DisplayRulesCache().build(DEFAULT_DISPLAY_RULES)

    icon, path = cache.run_on(_marker([]))
    assert icon == IconOptions(prefix="fas", icon="fa-circle", marker_color="blue")
    assert path.color == "blue"

    icon, _ = cache.run_on(_marker(["#trip"]))
    assert icon.icon == "fa-hiking"
    assert icon.marker_color == "green"


def test_later_rules_override_per_field():
    cache = DisplayRulesCache().build(DEFAULT_DISPLAY_RULES)
    icon, _ = cache.run_on(_marker(["#trip", "#trip-water"]))
    # #trip-water only sets the color, the icon comes from #trip
    assert icon.icon == "fa-hiking"
    assert icon.marker_color == "blue"

    icon, _ = cache.run_on(_marker(["#trip", "#dogs"]))
    assert icon.icon == "fa-paw"
    assert icon.marker_color == "green"


def test_path_options_for_geometry_layers():
    rules = [
        DisplayRule(query="", preset=True, path_options=PathOptions(color="blue", weight=3)),
        DisplayRule(query='path:"Hikes"', path_options=PathOptions(color="red")),
    ]
    cache = DisplayRulesCache().build(rules)
    walk = GeometryLayer(source=SourceRef("Hikes/walk.md"), geometry={"type": "Point", "coordinates": [0, 0]}, source_offset=4)
    marker = PointMarker(source=SourceRef("Hikes/walk.md"), coordinate=Coordinate(0, 0), source_offset=9)

    apply_display_rules([walk, marker], cache)
    # geometry layers never match identifier predicates, so they get the preset
    assert walk.style == PathOptions(color="blue", weight=3)
    assert marker.icon == IconOptions()


def test_no_preset_gives_empty_defaults():
    cache = DisplayRulesCache().build([DisplayRule(query="tag:#x", icon_details=IconOptions(icon="fa-x"))])
    icon, path = cache.run_on(_marker([]))
    assert icon == IconOptions()
    assert path == PathOptions()


def test_garbled_cache_raises():
    cache = DisplayRulesCache().build(DEFAULT_DISPLAY_RULES)
    cache._rules = cache._rules[:-1]
    with pytest.raises(ValueError, match="garbled"):
        cache.run_on(_marker([]))


def test_rule_query_is_validated():
    with pytest.raises(ValidationError):
        DisplayRule(query="bogus:thing")
