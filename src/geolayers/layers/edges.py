"""Link-derived edges between point markers.

Edges live in an :class:`EdgeGraph` keyed by marker id. Each edge object
is stored under both of its endpoints, and ``remove_edges_of`` detaches
it from both sides at once.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from ..notes.models import Outlink
from ..notes.parser import resolve_subpath
from ..notes.store import DocumentStore
from .models import GeoLayer, LayerKind, PointMarker


logger = logging.getLogger(__name__)


class Edge:
    """An undirected relation between two markers plus an optional rendered path."""

    def __init__(self, marker1: PointMarker, marker2: PointMarker, path_handle: Any = None):
        self.marker1 = marker1
        self.marker2 = marker2
        self.path_handle = path_handle

    def other(self, marker: PointMarker) -> PointMarker:
        return self.marker2 if marker is self.marker1 else self.marker1

    def __repr__(self) -> str:
        return f"Edge({self.marker1.name!r} <-> {self.marker2.name!r})"


class EdgeGraph:
    def __init__(self) -> None:
        self._adjacency: dict[str, list[Edge]] = {}

    def add_edge(self, marker1: PointMarker, marker2: PointMarker, path_handle: Any = None) -> Edge:
        edge = Edge(marker1, marker2, path_handle)
        self._adjacency.setdefault(marker1.id, []).append(edge)
        self._adjacency.setdefault(marker2.id, []).append(edge)
        return edge

    def edges_of(self, marker_id: str) -> list[Edge]:
        return list(self._adjacency.get(marker_id, []))

    def degree(self, marker_id: str) -> int:
        return len(self._adjacency.get(marker_id, []))

    def is_linked(self, marker_id: str, other_id: str) -> bool:
        for edge in self._adjacency.get(marker_id, []):
            if edge.marker1.id == other_id or edge.marker2.id == other_id:
                return True
        return False

    def remove_edges_of(self, marker_id: str) -> list[Any]:
        """Detach every edge of a marker from both endpoints.

        Returns the rendered path handles that were cleared, so a renderer
        can drop them.
        """
        handles: list[Any] = []
        for edge in self._adjacency.pop(marker_id, []):
            for end_id in (edge.marker1.id, edge.marker2.id):
                if end_id == marker_id:
                    continue
                others = self._adjacency.get(end_id)
                if others is None:
                    continue
                others[:] = [e for e in others if e is not edge]
                if not others:
                    del self._adjacency[end_id]
            if edge.path_handle is not None:
                handles.append(edge.path_handle)
                edge.path_handle = None
        return handles

    def remove_path_handles(self) -> list[Any]:
        """Clear rendered handles while keeping the logical edges."""
        handles: list[Any] = []
        for edge in self.edges():
            if edge.path_handle is not None:
                handles.append(edge.path_handle)
                edge.path_handle = None
        return handles

    def clear(self) -> list[Any]:
        handles = self.remove_path_handles()
        self._adjacency.clear()
        return handles

    def edges(self) -> list[Edge]:
        seen: set[int] = set()
        result: list[Edge] = []
        for edge_list in self._adjacency.values():
            for edge in edge_list:
                if id(edge) in seen:
                    continue
                seen.add(id(edge))
                result.append(edge)
        return result

    def __len__(self) -> int:
        return len(self.edges())

    def copy(self) -> "EdgeGraph":
        """An independent graph: edges are new objects carrying the same markers and handles."""
        copies: dict[int, Edge] = {}
        other = EdgeGraph()
        for marker_id, edge_list in self._adjacency.items():
            copied = []
            for edge in edge_list:
                if id(edge) not in copies:
                    copies[id(edge)] = Edge(edge.marker1, edge.marker2, edge.path_handle)
                copied.append(copies[id(edge)])
            other._adjacency[marker_id] = copied
        return other

    def rekey(self, old_id: str, new_id: str) -> None:
        """Move a marker's adjacency after its id changed."""
        if old_id == new_id or old_id not in self._adjacency:
            return
        self._adjacency.setdefault(new_id, []).extend(self._adjacency.pop(old_id))

    def remap(self, markers: dict[str, PointMarker]) -> "EdgeGraph":
        """A graph with the same edges whose endpoints are taken from ``markers`` by id."""
        other = EdgeGraph()
        for edge in self.edges():
            marker1 = markers.get(edge.marker1.id, edge.marker1)
            marker2 = markers.get(edge.marker2.id, edge.marker2)
            other.add_edge(marker1, marker2, edge.path_handle)
        return other


def is_linked_from(layer: GeoLayer, link: Outlink, store: DocumentStore) -> bool:
    """Whether ``link`` points at ``layer`` precisely enough to draw an edge.

    Document-level facts match any link to their note. Inline markers
    match a bare link, or an anchored link whose heading or block is the
    one containing the marker.
    """
    source = layer.source
    if source is None:
        return False
    basename = source.basename.lower()
    file_matches = (
        link.target_name.lower() == basename
        or link.target.lower() == source.name.lower()
        or link.display_text.lower() == basename
    )
    if not file_matches:
        return False

    if layer.kind == LayerKind.POINT_MARKER and layer.is_front_matter_marker:
        return True
    if layer.kind == LayerKind.GEOMETRY:
        return True
    if layer.kind != LayerKind.POINT_MARKER:
        return False
    if not link.section:
        return True

    if layer.block is None and layer.heading is None:
        return False

    match = resolve_subpath(store.get_metadata(source), link.section)
    if match is None:
        return False
    if layer.block is not None and match.kind == "block" and match.block.id == layer.block.id:
        return True
    if (
        layer.heading is not None
        and match.kind == "heading"
        and match.heading.text == layer.heading.text
        and match.heading.level == layer.heading.level
    ):
        return True
    return False


def _add_edges_from_file(
    path: str,
    by_path: dict[str, list[PointMarker]],
    store: DocumentStore,
    graph: EdgeGraph,
    visited: set[str],
) -> None:
    if path in visited:
        return
    visited.add(path)
    source_markers = by_path[path]
    source = source_markers[0].source
    metadata = store.get_metadata(source)
    if metadata is None:
        return

    for link in [*metadata.links, *metadata.frontmatter_links]:
        destination = store.resolve_link(link.link, source)
        if destination is None or destination.path not in by_path:
            continue
        for destination_marker in by_path[destination.path]:
            if not is_linked_from(destination_marker, link, store):
                continue
            for source_marker in source_markers:
                if source_marker is not destination_marker:
                    graph.add_edge(source_marker, destination_marker)


def build_edges(
    layers: Iterable[GeoLayer],
    store: DocumentStore,
    graph: Optional[EdgeGraph] = None,
) -> EdgeGraph:
    """Connect every marker of a note to each marker its links point at.

    Each note is visited once per call, so link cycles terminate.
    """
    if graph is None:
        graph = EdgeGraph()

    by_path: dict[str, list[PointMarker]] = {}
    for layer in layers:
        if layer.kind != LayerKind.POINT_MARKER:
            continue
        graph.remove_edges_of(layer.id)
        by_path.setdefault(layer.source.path, []).append(layer)

    visited: set[str] = set()
    for path in by_path:
        _add_edges_from_file(path, by_path, store, graph, visited)

    logger.debug(f"Built {len(graph)} edges across {len(by_path)} files")
    return graph
