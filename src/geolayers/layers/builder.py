from __future__ import annotations

import fnmatch
import logging
from typing import Any, Optional

from ..notes.models import NoteMetadata, SourceRef
from ..notes.parser import heading_and_block_for_offset
from . import patterns
from .extractor import MatchKind, RawMatch, verify_location
from .models import Coordinate, GeoLayer, GeometryFormat, GeometryLayer, PointMarker


logger = logging.getLogger(__name__)

TRACK_FORMATS = {"gpx", "kml", "tcx"}


def parse_inline_tags(tags_text: Optional[str]) -> list[str]:
    """``tag:a tag:b/c`` -> ``["#a", "#b/c"]``"""
    if not tags_text:
        return []
    return ["#" + m.group("tag") for m in patterns.INLINE_TAG_IN_NOTE.finditer(tags_text) if m.group("tag")]


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset)


def _build_one(
    source: SourceRef,
    text: str,
    match: RawMatch,
    file_tags: list[str],
    metadata: Optional[NoteMetadata],
) -> GeoLayer:
    if match.kind == MatchKind.FRONT_MATTER:
        verify_location(match.lat, match.lng)
        return PointMarker(
            source=source,
            coordinate=Coordinate(match.lat, match.lng),
            raw_match=match,
            tags=list(file_tags),
        )

    line = _line_of(text, match.offset)
    heading, block = heading_and_block_for_offset(metadata, match.offset)
    tags = parse_inline_tags(match.tags_text) + list(file_tags)

    if match.kind == MatchKind.GEOMETRY_BLOCK:
        if not isinstance(match.geometry, dict):
            raise ValueError("Geometry block has no geometry")
        return GeometryLayer(
            source=source,
            geometry=match.geometry,
            source_format=GeometryFormat.STRUCTURED,
            source_offset=match.offset,
            source_line=line,
            heading=heading,
            block=block,
            raw_match=match,
            tags=tags,
        )

    verify_location(match.lat, match.lng)
    return PointMarker(
        source=source,
        coordinate=Coordinate(match.lat, match.lng),
        source_offset=match.offset,
        source_line=line,
        heading=heading,
        block=block,
        raw_match=match,
        display_name=match.display_name or None,
        tags=tags,
    )


def build_layers(
    source: SourceRef,
    text: str,
    raw_matches: list[RawMatch],
    file_tags: list[str],
    *,
    metadata: Optional[NoteMetadata] = None,
) -> list[GeoLayer]:
    """Wrap extracted matches into layer entities, in match order.

    Inline tags come before the file's own tags and duplicates are kept.
    A match that cannot be built is logged and skipped.
    """
    if source is None:
        raise ValueError("build_layers requires a source")

    layers: list[GeoLayer] = []
    for match in raw_matches:
        try:
            layers.append(_build_one(source, text, match, file_tags, metadata))
        except (TypeError, ValueError) as e:
            logger.warning(f"Error converting location in file {source.name}: could not parse {match.text!r}: {e}")
    return layers


def build_track_layer(source: SourceRef, geometry: dict[str, Any], file_tags: Optional[list[str]] = None) -> GeometryLayer:
    if source is None:
        raise ValueError("build_track_layer requires a source")
    source_format = GeometryFormat.TRACK if source.extension in TRACK_FORMATS else GeometryFormat.STRUCTURED
    return GeometryLayer(
        source=source,
        geometry=geometry,
        source_format=source_format,
        tags=list(file_tags or []),
    )


def has_front_matter_locations(
    front_matter: Optional[dict[str, Any]],
    tags: list[str],
    *,
    multi_location_key: str = "locations",
    tag_pattern: str = "",
    scan_all_notes: bool = False,
) -> bool:
    """Whether a note's body should be scanned for inline locations."""
    if scan_all_notes:
        return True
    if front_matter and multi_location_key in front_matter:
        return True
    pattern = (tag_pattern or "").strip()
    if pattern:
        return any(fnmatch.fnmatchcase(tag, pattern) for tag in tags)
    return False
