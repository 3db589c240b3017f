import pytest

from geolayers.layers.builder import (
    build_layers,
    build_track_layer,
    has_front_matter_locations,
    parse_inline_tags,
)
from geolayers.layers.extractor import MatchKind, RawMatch, extract
from geolayers.layers.models import GeometryFormat, LayerKind
from geolayers.notes.models import SourceRef
from geolayers.notes.parser import parse_markdown


def test_scenario_inline_tags_become_marker_tags():
    text = "[Cafe](geo:48.8566,2.3522) tag:food"
    result = extract(text)
    layers = build_layers(SourceRef("Notes/Cafe.md"), text, result.matches, ["#paris"])
    assert len(layers) == 1
    marker = layers[0]
    assert marker.kind == LayerKind.POINT_MARKER
    assert marker.tags == ["#food", "#paris"]
    assert marker.display_name == "Cafe"
    assert marker.source_offset == 0
    assert marker.source_line == 0


def test_line_heading_and_block_are_resolved():
    text = "# Paris\nIntro\n## South\nSee [A](geo:1,2) here ^spot\n"
    result = extract(text)
    layers = build_layers(SourceRef("Trip.md"), text, result.matches, [], metadata=parse_markdown(text))
    marker = layers[0]
    assert marker.source_line == 3
    assert marker.heading.text == "South"
    assert marker.block.id == "spot"


def test_front_matter_marker_gets_file_tags_only():
    result = extract("", {"location": "1,2"})
    layers = build_layers(SourceRef("Home.md"), "", result.matches, ["#home"])
    marker = layers[0]
    assert marker.is_front_matter_marker
    assert marker.source_line is None
    assert marker.tags == ["#home"]
    assert marker.id.endswith("loc-nofileline")


def test_geometry_block_becomes_geometry_layer():
    text = 'Walk:\n```geojson tag:walk\n{"type": "Point", "coordinates": [2, 1]}\n```\n'
    result = extract(text)
    layers = build_layers(SourceRef("Walks.md"), text, result.matches, ["#outdoors"])
    layer = layers[0]
    assert layer.kind == LayerKind.GEOMETRY
    assert layer.source_format == GeometryFormat.STRUCTURED
    assert layer.source_line == 1
    assert layer.tags == ["#walk", "#outdoors"]


def test_bad_match_is_skipped_not_raised():
    bad = RawMatch(kind=MatchKind.INLINE, offset=0, match_length=3, text="bad", lat=200.0, lng=0.0)
    good = extract("x [A](geo:1,2)").matches[0]
    layers = build_layers(SourceRef("n.md"), "x [A](geo:1,2)", [bad, good], [])
    assert [l.display_name for l in layers] == ["A"]


def test_missing_source_is_a_programmer_error():
    with pytest.raises(ValueError):
        build_layers(None, "", [], [])


def test_duplicate_tags_are_kept():
    text = "[A](geo:1,2) tag:food"
    layers = build_layers(SourceRef("n.md"), text, extract(text).matches, ["#food"])
    assert layers[0].tags == ["#food", "#food"]


def test_ids_are_deterministic_across_builds():
    text = "---\nlocation: 1,1\n---\n[A](geo:1,2)\n`location: 3,4`\n[B](geo:5,6) tag:x\n"
    fm = {"location": "1,1"}

    def ids():
        result = extract(text, fm)
        return [l.id for l in build_layers(SourceRef("n.md"), text, result.matches, [])]

    assert ids() == ids()
    assert len(set(ids())) == 4


def test_parse_inline_tags():
    assert parse_inline_tags("tag:a tag:b/c") == ["#a", "#b/c"]
    assert parse_inline_tags(None) == []


def test_track_layer_format_by_extension():
    geometry = {"type": "FeatureCollection", "features": []}
    assert build_track_layer(SourceRef("ride.gpx"), geometry).source_format == GeometryFormat.TRACK
    assert build_track_layer(SourceRef("area.geojson"), geometry).source_format == GeometryFormat.STRUCTURED
    layer = build_track_layer(SourceRef("ride.gpx"), geometry, ["#bike"])
    assert layer.source_offset is None
    assert layer.tags == ["#bike"]


def test_inline_scan_gating():
    assert has_front_matter_locations({"locations": None}, [])
    assert not has_front_matter_locations({"location": "1,2"}, [])
    assert not has_front_matter_locations(None, ["#travel"])
    assert has_front_matter_locations(None, ["#travel/europe"], tag_pattern="#travel*")
    assert has_front_matter_locations({"places": ""}, [], multi_location_key="places")
    assert has_front_matter_locations(None, [], scan_all_notes=True)
