"""Rewrite a note's text after one of its markers moved."""

from __future__ import annotations

import logging
import re

from ..notes.parser import split_front_matter
from .extractor import LNG_LIMITS, verify_location
from .models import LayerKind, PointMarker, format_number


logger = logging.getLogger(__name__)


def clamp_longitude(lng: float) -> float:
    return min(max(lng, LNG_LIMITS[0]), LNG_LIMITS[1])


def format_coordinate(lat: float, lng: float) -> str:
    return f"{format_number(lat)},{format_number(lng)}"


def set_front_matter_value(text: str, key: str, value: str) -> str:
    """Set ``key: value`` in the front matter, creating it when missing.

    ``value`` is written verbatim. An existing key's indented or list
    continuation lines are replaced with it.
    """
    new_line = f"{key}: {value}\n"
    raw, _ = split_front_matter(text)
    if raw is None:
        return f"---\n{new_line}---\n{text}"

    prefix = text[: text.find("\n") + 1]
    suffix = text[len(prefix) + len(raw):]
    key_re = re.compile(rf"^{re.escape(key)}\s*:")

    lines = raw.splitlines(keepends=True)
    out: list[str] = []
    replaced = False
    i = 0
    while i < len(lines):
        line = lines[i]
        if not replaced and key_re.match(line):
            out.append(new_line)
            replaced = True
            i += 1
            while i < len(lines) and lines[i].strip() and lines[i][0] in " \t-":
                i += 1
            continue
        out.append(line)
        i += 1

    if not replaced:
        if out and not out[-1].endswith("\n"):
            out[-1] += "\n"
        out.append(new_line)
    return prefix + "".join(out) + suffix


def move_marker(
    marker: PointMarker,
    lat: float,
    lng: float,
    text: str,
    *,
    front_matter_key: str = "location",
) -> str:
    """Return ``text`` with ``marker`` moved to ``(lat, lng)``.

    Longitude is clamped into range. Front matter markers get a
    ``key: "lat,lng"`` value, inline markers have the coordinates replaced
    inside their original match so the name and tags survive.
    """
    if marker.kind != LayerKind.POINT_MARKER:
        raise ValueError(f"Only point markers can be moved, not {marker.kind.value}")
    lng = clamp_longitude(lng)
    verify_location(lat, lng)
    location = format_coordinate(lat, lng)

    if marker.is_front_matter_marker:
        return set_front_matter_value(text, front_matter_key, f'"{location}"')

    match = marker.raw_match
    if match is None or match.coordinate_span is None:
        raise ValueError(f"Marker {marker.id} has no inline match to rewrite")
    offset = marker.source_offset
    if text[offset:offset + match.match_length] != match.text:
        raise ValueError(f"Text of {marker.source.path} changed at offset {offset}, cannot move marker")

    start, end = match.coordinate_span
    replacement = match.text[:start] + location + match.text[end:]
    logger.debug(f"Moving marker {marker.id} in {marker.source.path} to {location}")
    return text[:offset] + replacement + text[offset + match.match_length:]
