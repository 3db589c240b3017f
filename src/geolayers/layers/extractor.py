"""Location extraction from note text and front matter.

``extract`` is a pure function of its inputs. Every fact it finds becomes
a :class:`RawMatch`; a malformed fact is dropped and recorded as an
:class:`ExtractError` instead of aborting the batch.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from . import patterns


logger = logging.getLogger(__name__)

LAT_LIMITS = (-90.0, 90.0)
LNG_LIMITS = (-180.0, 180.0)

GEOJSON_TYPES = {
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "Polygon",
    "MultiPolygon",
    "GeometryCollection",
    "Feature",
    "FeatureCollection",
}


class LocationError(ValueError):
    """Raised when a coordinate is outside the WGS84 range."""


class MatchKind(str, Enum):
    LEGACY = "legacy"
    INLINE = "inline"
    FRONT_MATTER = "front-matter"
    GEOMETRY_BLOCK = "geometry-block"


@dataclass(frozen=True)
class RawMatch:
    kind: MatchKind
    # Character offset of the match in the source text, None for front matter
    offset: Optional[int]
    match_length: int
    text: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    geometry: Optional[dict[str, Any]] = None
    display_name: Optional[str] = None
    tags_text: Optional[str] = None
    # (start, end) of "lat,lng" relative to the start of the match
    coordinate_span: Optional[tuple[int, int]] = None


@dataclass(frozen=True)
class ExtractError:
    offset: Optional[int]
    text: str
    message: str


@dataclass
class ExtractResult:
    matches: list[RawMatch] = field(default_factory=list)
    errors: list[ExtractError] = field(default_factory=list)


def verify_location(lat: float, lng: float) -> None:
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise LocationError(f"Non-finite coordinate: {lat},{lng}")
    if lng < LNG_LIMITS[0] or lng > LNG_LIMITS[1]:
        raise LocationError(f"Lng {lng} is outside the allowed limits")
    if lat < LAT_LIMITS[0] or lat > LAT_LIMITS[1]:
        raise LocationError(f"Lat {lat} is outside the allowed limits")


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"Not a coordinate: {value!r}")
    return float(value)


def get_front_matter_location(
    front_matter: Optional[dict[str, Any]], key: str = "location"
) -> Optional[tuple[float, float]]:
    """Read ``(lat, lng)`` from a note's front matter.

    Accepts ``[lat, lng]`` (numbers or numeric strings), ``"lat,lng"`` and
    ``["lat,lng"]``. Anything malformed is logged and reads as no location.
    """
    if not front_matter or key not in front_matter:
        return None
    value = front_matter[key]
    if value is None or value == "" or value == []:
        return None
    try:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            lat = _to_float(value[0])
            lng = _to_float(value[1])
            verify_location(lat, lng)
            return lat, lng

        location = value
        if isinstance(location, (list, tuple)) and len(location) == 1:
            location = location[0]
        if isinstance(location, str):
            m = patterns.COORDINATES.match(location)
            if m:
                lat = float(m.group("lat"))
                lng = float(m.group("lng"))
                verify_location(lat, lng)
                return lat, lng
        logger.warning(f"Unknown front matter location format: {value!r}")
    except (TypeError, ValueError) as e:
        logger.warning(f"Error converting front matter location {value!r}: {e}")
    return None


def _coordinate_span(m) -> tuple[int, int]:
    return m.start("lat") - m.start(), m.end("lng") - m.start()


def _parse_geometry(payload: str) -> dict[str, Any]:
    data = json.loads(payload)
    if not isinstance(data, dict) or data.get("type") not in GEOJSON_TYPES:
        raise ValueError("Payload is not a GeoJSON object")
    return data


def extract(
    source_text: str,
    front_matter: Optional[dict[str, Any]] = None,
    *,
    front_matter_key: str = "location",
    scan_body: bool = True,
) -> ExtractResult:
    """Find every location fact in a note.

    The front matter location comes first, then legacy inline matches,
    then ``[name](geo:...)`` matches, then ``geojson`` blocks. With
    ``scan_body`` off only the front matter is read.
    """
    result = ExtractResult()

    if front_matter and front_matter_key in front_matter:
        location = get_front_matter_location(front_matter, front_matter_key)
        if location is not None:
            result.matches.append(
                RawMatch(
                    kind=MatchKind.FRONT_MATTER,
                    offset=None,
                    match_length=0,
                    text="",
                    lat=location[0],
                    lng=location[1],
                )
            )
        elif front_matter[front_matter_key] not in (None, "", []):
            result.errors.append(
                ExtractError(None, repr(front_matter[front_matter_key]), "Malformed front matter location")
            )

    if not scan_body:
        return result

    inline_matches = list(patterns.INLINE_LOCATION_OLD_SYNTAX.finditer(source_text))
    inline_matches += list(patterns.INLINE_LOCATION_WITH_TAGS.finditer(source_text))
    for m in inline_matches:
        try:
            lat = float(m.group("lat"))
            lng = float(m.group("lng"))
            verify_location(lat, lng)
        except ValueError as e:
            logger.warning(f"Could not parse location {m.group(0)!r}: {e}")
            result.errors.append(ExtractError(m.start(), m.group(0), str(e)))
            continue
        groups = m.groupdict()
        result.matches.append(
            RawMatch(
                kind=MatchKind.INLINE if "name" in groups else MatchKind.LEGACY,
                offset=m.start(),
                match_length=len(m.group(0)),
                text=m.group(0),
                lat=lat,
                lng=lng,
                display_name=groups.get("name") or None,
                tags_text=groups.get("tags"),
                coordinate_span=_coordinate_span(m),
            )
        )

    for m in patterns.INLINE_GEOJSON_BLOCK.finditer(source_text):
        try:
            geometry = _parse_geometry(m.group("payload"))
        except ValueError as e:
            logger.warning(f"Could not parse geojson block at offset {m.start()}: {e}")
            result.errors.append(ExtractError(m.start(), m.group(0), str(e)))
            continue
        result.matches.append(
            RawMatch(
                kind=MatchKind.GEOMETRY_BLOCK,
                offset=m.start(),
                match_length=len(m.group(0)),
                text=m.group(0),
                geometry=geometry,
                tags_text=m.group("tags"),
            )
        )

    logger.debug(f"Extracted {len(result.matches)} matches, {len(result.errors)} errors")
    return result
