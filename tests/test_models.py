import pytest

from geolayers.layers.models import (
    Coordinate,
    FloatingLayer,
    GeometryLayer,
    LayerKind,
    PointMarker,
    cache_tags_from_layers,
    djb2_hash,
    format_number,
    generate_geometry_id,
    generate_marker_id,
    get_bounds,
    is_same,
)
from geolayers.layers.styles import IconOptions
from geolayers.notes.models import SourceRef


def _marker(**kwargs) -> PointMarker:
    defaults = dict(source=SourceRef("Notes/Cafe.md"), coordinate=Coordinate(48.8566, 2.3522), source_offset=10, source_line=2)
    defaults.update(kwargs)
    return PointMarker(**defaults)


def test_djb2_hash_is_stable():
    assert djb2_hash("") == 5381
    assert djb2_hash("a") == 5381 * 33 + ord("a")
    assert djb2_hash("Cafe.md") == djb2_hash("Cafe.md")
    assert 0 <= djb2_hash("x" * 1000) <= 0xFFFFFFFF


def test_format_number_drops_integral_fraction():
    assert format_number(48.0) == "48"
    assert format_number(-2.5) == "-2.5"
    assert format_number(48.8566) == "48.8566"


def test_marker_id_formula():
    h = djb2_hash("Cafe.md")
    assert generate_marker_id("Cafe.md", "1", "2", 15, 3) == f"{h}12loc-15"
    assert generate_marker_id("Cafe.md", "1", "2", None, 3) == f"{h}12loc-nofileloc3"
    assert generate_marker_id("Cafe.md", "1", "2") == f"{h}12loc-nofileline"
    # offset 0 falls back to the line
    assert generate_marker_id("Cafe.md", "1", "2", 0, 0) == f"{h}12loc-nofileline"
    assert generate_geometry_id("Track.gpx") == f"{djb2_hash('Track.gpx')}loc-nofileline"


def test_marker_id_is_deterministic_and_recomputed():
    a = _marker()
    b = _marker()
    assert a.id == b.id
    assert a.id == generate_marker_id("Cafe.md", "48.8566", "2.3522", 10, 2)

    a.source_offset = 99
    a.generate_id()
    assert a.id != b.id
    assert a.id.endswith("loc-99")


def test_name_prefers_display_name():
    assert _marker().name == "Cafe"
    assert _marker(display_name="Le Cafe").name == "Le Cafe"


def test_front_matter_marker_has_no_offset():
    assert _marker(source_offset=None, source_line=None).is_front_matter_marker
    assert not _marker().is_front_matter_marker


def test_point_marker_content_equality():
    a = _marker(tags=["#a", "#b"])
    assert is_same(a, _marker(tags=["#b"]))
    assert not is_same(a, _marker(display_name="Other"))
    assert not is_same(a, _marker(source_line=3))
    assert not is_same(a, _marker(coordinate=Coordinate(48.8567, 2.3522)))
    assert not is_same(a, _marker(), existing_edges=1, new_edges=2)
    assert is_same(a, _marker(), existing_edges=2, new_edges=2)


def test_point_marker_equality_compares_icon_visuals_only():
    a = _marker(icon=IconOptions(icon="fa-circle", marker_color="blue", prefix="fas"))
    assert is_same(a, _marker(icon=IconOptions(icon="fa-circle", marker_color="blue", prefix="far")))
    assert not is_same(a, _marker(icon=IconOptions(icon="fa-paw", marker_color="blue")))


def test_coordinate_string_rounds_to_six_decimals():
    assert str(Coordinate(1.00000001, 2)) == str(Coordinate(1.0, 2.0))
    assert str(Coordinate(48.8566, 2.3522)) == "LatLng(48.8566, 2.3522)"


def test_geometry_equality_ignores_geometry_content():
    source = SourceRef("Walks.md")
    a = GeometryLayer(source=source, geometry={"type": "Point", "coordinates": [1, 2]}, source_offset=5, source_line=1)
    b = GeometryLayer(source=source, geometry={"type": "Point", "coordinates": [9, 9]}, source_offset=5, source_line=1)
    c = GeometryLayer(source=source, geometry={"type": "Point", "coordinates": [1, 2]}, source_offset=6, source_line=1)
    assert a.kind == LayerKind.GEOMETRY
    assert a.id == b.id
    assert is_same(a, b)
    assert not is_same(a, c)
    assert not is_same(a, _marker())


def test_floating_layers_compare_by_identity():
    a = FloatingLayer.point("Search result", 1, 2)
    b = FloatingLayer.point("Search result", 1, 2)
    assert a.id == ""
    assert a.kind == LayerKind.FLOATING_POINT
    assert is_same(a, a)
    assert not is_same(a, b)

    route = FloatingLayer.path({"type": "LineString", "coordinates": [[0, 0], [1, 1]]}, "Route")
    assert route.kind == LayerKind.FLOATING_GEOMETRY
    assert route.name == "Route"


def test_bounds():
    assert get_bounds(_marker()) == [Coordinate(48.8566, 2.3522)]

    geometry = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "geometry": {"type": "LineString", "coordinates": [[2, 10], [4, -3, 100]]}},
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [-1, 5]}},
        ],
    }
    layer = GeometryLayer(source=SourceRef("t.gpx"), geometry=geometry)
    assert get_bounds(layer) == [Coordinate(-3, -1), Coordinate(10, 4)]
    assert get_bounds(GeometryLayer(source=SourceRef("e.geojson"), geometry={"type": "FeatureCollection", "features": []})) == []
    assert get_bounds(FloatingLayer.point(None, 1, 2)) == [Coordinate(1, 2)]


def test_cache_tags_from_layers():
    tags = {"#existing"}
    cache_tags_from_layers([_marker(tags=["#a", "#b"]), _marker(tags=["#a"])], tags)
    assert tags == {"#existing", "#a", "#b"}


def test_unknown_kind_raises():
    a = FloatingLayer.point(None, 1, 2)
    a.kind = "bogus"
    with pytest.raises(ValueError):
        get_bounds(a)
