"""Geo layer entities.

The four layer variants are separate dataclasses sharing a ``kind``
discriminant; ``GeoLayer`` is their union. Functions that handle every
variant (``is_same``, ``get_bounds``) dispatch on ``kind``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional, Union

from ..notes.models import Block, Heading, SourceRef
from .extractor import RawMatch
from .styles import IconOptions, PathOptions


class LayerKind(str, Enum):
    POINT_MARKER = "point-marker"
    GEOMETRY = "geometry"
    FLOATING_POINT = "floating-point"
    FLOATING_GEOMETRY = "floating-geometry"


class GeometryFormat(str, Enum):
    STRUCTURED = "structured"
    TRACK = "track"


def format_number(value: float) -> str:
    """Format a float the way JavaScript prints numbers (``48.0`` -> ``48``)."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float

    def __str__(self) -> str:
        # Rounded to 6 decimals, so equality ignores sub-micro-degree noise
        return f"LatLng({format_number(round(self.lat, 6))}, {format_number(round(self.lng, 6))})"


def djb2_hash(text: str) -> int:
    h = 5381
    for ch in text:
        h = ((h << 5) + h + ord(ch)) & 0xFFFFFFFF
    return h


def _position_suffix(source_offset: Optional[int], source_line: Optional[int]) -> str:
    # Offset 0 and line 0 read as missing, which keeps existing ids stable
    if source_offset:
        return str(source_offset)
    if source_line:
        return f"nofileloc{source_line}"
    return "nofileline"


def generate_marker_id(
    file_name: str,
    lat: str,
    lng: str,
    source_offset: Optional[int] = None,
    source_line: Optional[int] = None,
) -> str:
    return f"{djb2_hash(file_name)}{lat}{lng}loc-{_position_suffix(source_offset, source_line)}"


def generate_geometry_id(
    file_name: str,
    source_offset: Optional[int] = None,
    source_line: Optional[int] = None,
) -> str:
    return f"{djb2_hash(file_name)}loc-{_position_suffix(source_offset, source_line)}"


@dataclass(eq=False)
class PointMarker:
    source: SourceRef
    coordinate: Coordinate
    source_offset: Optional[int] = None
    source_line: Optional[int] = None
    heading: Optional[Heading] = None
    block: Optional[Block] = None
    raw_match: Optional[RawMatch] = None
    display_name: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    icon: Optional[IconOptions] = None
    # Opaque object attached by a renderer, kept across reconciles
    handle: Any = None
    kind: LayerKind = field(default=LayerKind.POINT_MARKER, init=False)
    id: str = field(default="", init=False)

    def __post_init__(self) -> None:
        self.generate_id()

    def generate_id(self) -> None:
        self.id = generate_marker_id(
            self.source.name,
            format_number(self.coordinate.lat),
            format_number(self.coordinate.lng),
            self.source_offset,
            self.source_line,
        )

    @property
    def name(self) -> str:
        return self.display_name or self.source.basename

    @property
    def is_front_matter_marker(self) -> bool:
        return self.source_offset is None

    def __repr__(self) -> str:
        return f"PointMarker(id={self.id!r}, name={self.name!r}, source={self.source.path!r})"


@dataclass(eq=False)
class GeometryLayer:
    source: SourceRef
    geometry: dict[str, Any]
    source_format: GeometryFormat = GeometryFormat.STRUCTURED
    source_offset: Optional[int] = None
    source_line: Optional[int] = None
    heading: Optional[Heading] = None
    block: Optional[Block] = None
    raw_match: Optional[RawMatch] = None
    display_name: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    style: Optional[PathOptions] = None
    handle: Any = None
    kind: LayerKind = field(default=LayerKind.GEOMETRY, init=False)
    id: str = field(default="", init=False)

    def __post_init__(self) -> None:
        self.generate_id()

    def generate_id(self) -> None:
        self.id = generate_geometry_id(self.source.name, self.source_offset, self.source_line)

    @property
    def name(self) -> str:
        return self.display_name or self.source.basename

    def __repr__(self) -> str:
        return f"GeometryLayer(id={self.id!r}, name={self.name!r}, source={self.source.path!r})"


@dataclass(eq=False)
class FloatingLayer:
    """A marker or path with no position in any note (search result, route)."""

    kind: LayerKind
    coordinate: Optional[Coordinate] = None
    geometry: Optional[dict[str, Any]] = None
    display_name: Optional[str] = None
    source: Optional[SourceRef] = None
    tags: list[str] = field(default_factory=list)
    icon: Optional[IconOptions] = None
    style: Optional[PathOptions] = None
    handle: Any = None
    id: str = field(default="", init=False)

    @classmethod
    def point(cls, name: Optional[str], lat: float, lng: float) -> "FloatingLayer":
        return cls(kind=LayerKind.FLOATING_POINT, coordinate=Coordinate(lat, lng), display_name=name)

    @classmethod
    def path(cls, geometry: dict[str, Any], name: Optional[str] = None) -> "FloatingLayer":
        return cls(kind=LayerKind.FLOATING_GEOMETRY, geometry=geometry, display_name=name)

    def generate_id(self) -> None:
        self.id = ""

    @property
    def name(self) -> str:
        if self.display_name:
            return self.display_name
        return self.source.basename if self.source else ""

    source_offset = None
    source_line = None
    heading = None
    block = None
    raw_match = None


GeoLayer = Union[PointMarker, GeometryLayer, FloatingLayer]


def _icon_key(icon: Optional[IconOptions]) -> tuple:
    if icon is None:
        return (None, None, None, None)
    return (icon.icon_url, icon.icon, icon.icon_color, icon.marker_color)


def is_same(a: GeoLayer, b: GeoLayer, *, existing_edges: int = 0, new_edges: int = 0) -> bool:
    """Content equality used to keep an existing layer across a reconcile.

    Point markers compare edge counts only, not the edges themselves.
    Geometry layers compare position only, not geometry content.
    """
    if a.kind != b.kind:
        return False
    if a.kind == LayerKind.POINT_MARKER:
        return (
            a.source.name == b.source.name
            and str(a.coordinate) == str(b.coordinate)
            and a.source_offset == b.source_offset
            and a.source_line == b.source_line
            and a.display_name == b.display_name
            and existing_edges == new_edges
            and _icon_key(a.icon) == _icon_key(b.icon)
        )
    if a.kind == LayerKind.GEOMETRY:
        return (
            a.source.name == b.source.name
            and a.source_offset == b.source_offset
            and a.source_line == b.source_line
        )
    if a.kind in (LayerKind.FLOATING_POINT, LayerKind.FLOATING_GEOMETRY):
        return a is b
    raise ValueError(f"Unknown layer kind: {a.kind}")


def iter_geometry_positions(geometry: Optional[dict[str, Any]]) -> Iterator[tuple[float, float]]:
    """Yield every ``(lng, lat)`` position in a GeoJSON object."""
    if not isinstance(geometry, dict):
        return
    kind = geometry.get("type")
    if kind == "FeatureCollection":
        for feature in geometry.get("features") or []:
            yield from iter_geometry_positions(feature)
    elif kind == "Feature":
        yield from iter_geometry_positions(geometry.get("geometry"))
    elif kind == "GeometryCollection":
        for sub in geometry.get("geometries") or []:
            yield from iter_geometry_positions(sub)
    else:
        yield from _iter_positions(geometry.get("coordinates"))


def _iter_positions(coords: Any) -> Iterator[tuple[float, float]]:
    if not isinstance(coords, (list, tuple)) or not coords:
        return
    if isinstance(coords[0], (int, float)) and not isinstance(coords[0], bool):
        if len(coords) >= 2:
            yield float(coords[0]), float(coords[1])
        return
    for item in coords:
        yield from _iter_positions(item)


def _geometry_bounds(geometry: Optional[dict[str, Any]]) -> list[Coordinate]:
    positions = list(iter_geometry_positions(geometry))
    if not positions:
        return []
    lngs = [p[0] for p in positions]
    lats = [p[1] for p in positions]
    return [Coordinate(min(lats), min(lngs)), Coordinate(max(lats), max(lngs))]


def get_bounds(layer: GeoLayer) -> list[Coordinate]:
    """Coordinates to fit a view to: the point itself, or SW/NE corners."""
    if layer.kind == LayerKind.POINT_MARKER:
        return [layer.coordinate]
    if layer.kind == LayerKind.GEOMETRY:
        return _geometry_bounds(layer.geometry)
    if layer.kind == LayerKind.FLOATING_POINT:
        return [layer.coordinate] if layer.coordinate else []
    if layer.kind == LayerKind.FLOATING_GEOMETRY:
        return _geometry_bounds(layer.geometry)
    raise ValueError(f"Unknown layer kind: {layer.kind}")


def cache_tags_from_layers(layers: list[GeoLayer], tags: set[str]) -> set[str]:
    for layer in layers:
        tags.update(layer.tags)
    return tags
