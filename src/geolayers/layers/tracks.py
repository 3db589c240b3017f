"""Convert GPX, KML and TCX track files to GeoJSON feature collections."""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from typing import Any, Optional


logger = logging.getLogger(__name__)


class TrackParseError(ValueError):
    pass


def _feature(geometry: dict[str, Any], properties: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    return {"type": "Feature", "geometry": geometry, "properties": properties or {}}


def _collection(features: list[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": features}


def _text(el: Optional[ET.Element]) -> Optional[str]:
    if el is None or el.text is None:
        return None
    value = el.text.strip()
    return value or None


def _parse_xml(text: str) -> ET.Element:
    try:
        return ET.fromstring(text)
    except ET.ParseError as e:
        raise TrackParseError(f"Malformed XML: {e}") from e


def _gpx_point(el: ET.Element) -> list[float]:
    lng = float(el.attrib["lon"])
    lat = float(el.attrib["lat"])
    ele = _text(el.find("{*}ele"))
    if ele is not None:
        return [lng, lat, float(ele)]
    return [lng, lat]


def gpx_to_geojson(text: str) -> dict[str, Any]:
    root = _parse_xml(text)
    features: list[dict[str, Any]] = []
    try:
        for trk in root.iterfind(".//{*}trk"):
            segments = []
            for seg in trk.iterfind(".//{*}trkseg"):
                coords = [_gpx_point(p) for p in seg.iterfind(".//{*}trkpt")]
                if coords:
                    segments.append(coords)
            if not segments:
                continue
            props = {"name": _text(trk.find("{*}name"))}
            if len(segments) == 1:
                features.append(_feature({"type": "LineString", "coordinates": segments[0]}, props))
            else:
                features.append(_feature({"type": "MultiLineString", "coordinates": segments}, props))
        for rte in root.iterfind(".//{*}rte"):
            coords = [_gpx_point(p) for p in rte.iterfind(".//{*}rtept")]
            if coords:
                props = {"name": _text(rte.find("{*}name"))}
                features.append(_feature({"type": "LineString", "coordinates": coords}, props))
        for wpt in root.iterfind(".//{*}wpt"):
            props = {"name": _text(wpt.find("{*}name"))}
            features.append(_feature({"type": "Point", "coordinates": _gpx_point(wpt)}, props))
    except (KeyError, ValueError) as e:
        raise TrackParseError(f"Bad GPX point: {e}") from e
    return _collection(features)


def _kml_coordinates(el: Optional[ET.Element]) -> list[list[float]]:
    raw = _text(el)
    if raw is None:
        return []
    coords = []
    for item in raw.split():
        parts = item.split(",")
        if len(parts) < 2:
            raise TrackParseError(f"Bad KML coordinate: {item}")
        coords.append([float(p) for p in parts[:3]])
    return coords


def _kml_geometries(el: ET.Element) -> list[dict[str, Any]]:
    geometries: list[dict[str, Any]] = []
    for child in el:
        tag = child.tag.rsplit("}", 1)[-1]
        if tag == "Point":
            coords = _kml_coordinates(child.find("{*}coordinates"))
            if coords:
                geometries.append({"type": "Point", "coordinates": coords[0]})
        elif tag == "LineString":
            coords = _kml_coordinates(child.find("{*}coordinates"))
            if coords:
                geometries.append({"type": "LineString", "coordinates": coords})
        elif tag == "Polygon":
            rings = []
            outer = child.find("{*}outerBoundaryIs/{*}LinearRing/{*}coordinates")
            if outer is not None:
                rings.append(_kml_coordinates(outer))
            for inner in child.findall("{*}innerBoundaryIs/{*}LinearRing/{*}coordinates"):
                rings.append(_kml_coordinates(inner))
            if rings:
                geometries.append({"type": "Polygon", "coordinates": rings})
        elif tag == "MultiGeometry":
            geometries.extend(_kml_geometries(child))
    return geometries


def kml_to_geojson(text: str) -> dict[str, Any]:
    root = _parse_xml(text)
    features: list[dict[str, Any]] = []
    try:
        for placemark in root.iterfind(".//{*}Placemark"):
            props = {"name": _text(placemark.find("{*}name"))}
            description = _text(placemark.find("{*}description"))
            if description:
                props["description"] = description
            geometries = _kml_geometries(placemark)
            if len(geometries) == 1:
                features.append(_feature(geometries[0], props))
            elif geometries:
                features.append(_feature({"type": "GeometryCollection", "geometries": geometries}, props))
    except ValueError as e:
        raise TrackParseError(f"Bad KML coordinates: {e}") from e
    return _collection(features)


def tcx_to_geojson(text: str) -> dict[str, Any]:
    root = _parse_xml(text)
    features: list[dict[str, Any]] = []
    containers = list(root.iterfind(".//{*}Activity")) + list(root.iterfind(".//{*}Course"))
    try:
        for container in containers:
            coords = []
            for tp in container.iterfind(".//{*}Trackpoint"):
                position = tp.find("{*}Position")
                if position is None:
                    continue
                lat = _text(position.find("{*}LatitudeDegrees"))
                lng = _text(position.find("{*}LongitudeDegrees"))
                if lat is None or lng is None:
                    continue
                point = [float(lng), float(lat)]
                altitude = _text(tp.find("{*}AltitudeMeters"))
                if altitude is not None:
                    point.append(float(altitude))
                coords.append(point)
            if coords:
                name = _text(container.find("{*}Name")) or _text(container.find("{*}Id"))
                props = {"name": name, "sport": container.attrib.get("Sport")}
                features.append(_feature({"type": "LineString", "coordinates": coords}, props))
    except ValueError as e:
        raise TrackParseError(f"Bad TCX trackpoint: {e}") from e
    return _collection(features)


def geojson_file_to_geojson(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TrackParseError(f"Malformed GeoJSON: {e}") from e
    if not isinstance(data, dict) or "type" not in data:
        raise TrackParseError("GeoJSON document has no type")
    return data


CONVERTERS = {
    "gpx": gpx_to_geojson,
    "kml": kml_to_geojson,
    "tcx": tcx_to_geojson,
    "geojson": geojson_file_to_geojson,
}


def track_to_geojson(text: str, extension: str) -> dict[str, Any]:
    """Convert a track file's content by its extension."""
    converter = CONVERTERS.get(extension.lower().lstrip("."))
    if converter is None:
        raise TrackParseError(f"Unsupported track format: {extension}")
    return converter(text)
