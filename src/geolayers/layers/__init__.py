"""Geo layer extraction, identity, indexing and link edges."""

from .builder import build_layers, build_track_layer, has_front_matter_locations
from .cache import LayerIndex, ReconcileResult, diff_layers, reconcile
from .edges import Edge, EdgeGraph, build_edges, is_linked_from
from .extractor import (
    ExtractError,
    ExtractResult,
    LocationError,
    MatchKind,
    RawMatch,
    extract,
    get_front_matter_location,
    verify_location,
)
from .models import (
    Coordinate,
    FloatingLayer,
    GeoLayer,
    GeometryFormat,
    GeometryLayer,
    LayerKind,
    PointMarker,
    cache_tags_from_layers,
    get_bounds,
    is_same,
)

__all__ = [
    "Coordinate",
    "Edge",
    "EdgeGraph",
    "ExtractError",
    "ExtractResult",
    "FloatingLayer",
    "GeoLayer",
    "GeometryFormat",
    "GeometryLayer",
    "LayerIndex",
    "LayerKind",
    "LocationError",
    "MatchKind",
    "PointMarker",
    "RawMatch",
    "ReconcileResult",
    "build_edges",
    "build_layers",
    "build_track_layer",
    "cache_tags_from_layers",
    "diff_layers",
    "extract",
    "get_bounds",
    "get_front_matter_location",
    "has_front_matter_locations",
    "is_linked_from",
    "is_same",
    "reconcile",
    "verify_location",
]
