"""Drives extraction, edge building and reconcile for a whole vault.

``LayerController`` is the single owner of the live ``LayerIndex``. Each
update takes a ticket from ``begin_update``; results carrying a ticket
older than the last applied one are discarded by ``apply``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .config import GeoLayersConfig
from .layers.builder import build_layers, build_track_layer, has_front_matter_locations
from .layers.cache import LayerIndex, ReconcileResult
from .layers.edges import EdgeGraph, build_edges
from .layers.extractor import extract
from .layers.models import GeoLayer, LayerKind, PointMarker
from .layers.rewrite import move_marker
from .layers.tracks import TrackParseError, track_to_geojson
from .notes.models import SourceRef
from .notes.store import VaultDocumentStore
from .query.display_rules import DisplayRulesCache, apply_display_rules
from .query.engine import Query, QueryError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexSummary:
    scanned: int
    kept: int
    added: int
    removed: int
    # Rendered edge paths the caller should drop
    path_handles: tuple[Any, ...] = ()


@dataclass(frozen=True)
class FilterResult:
    layers: list[GeoLayer]
    query_error: bool
    message: Optional[str] = None


def build_source_layers(
    store: VaultDocumentStore,
    source: SourceRef,
    cfg: GeoLayersConfig,
    rules: Optional[DisplayRulesCache] = None,
) -> list[GeoLayer]:
    """Extract and build every layer of one note or track file."""
    if source.extension in cfg.track_extensions:
        try:
            geometry = track_to_geojson(store.read_text(source), source.extension)
        except TrackParseError as e:
            logger.warning(f"Could not parse track file {source.path}: {e}")
            return []
        layers: list[GeoLayer] = [build_track_layer(source, geometry)]
    elif source.extension == "md":
        front_matter = store.get_front_matter(source)
        tags = store.get_all_tags(source)
        if not front_matter and not cfg.tag_for_geolocation_notes.strip() and not cfg.scan_all_notes:
            return []
        scan_body = has_front_matter_locations(
            front_matter,
            tags,
            multi_location_key=cfg.multi_location_key,
            tag_pattern=cfg.tag_for_geolocation_notes,
            scan_all_notes=cfg.scan_all_notes,
        )
        text = store.read_text(source)
        result = extract(text, front_matter, front_matter_key=cfg.front_matter_key, scan_body=scan_body)
        layers = build_layers(source, text, result.matches, tags, metadata=store.get_metadata(source))
    else:
        return []

    if rules is not None:
        apply_display_rules(layers, rules)
    logger.debug(f"{source.path}: {len(layers)} layers")
    return layers


class LayerController:
    def __init__(self, store: VaultDocumentStore, cfg: GeoLayersConfig):
        self.store = store
        self.cfg = cfg
        self.index = LayerIndex()
        self.rules = DisplayRulesCache(store).build(cfg.display_rules)
        self._next_ticket = 0
        self._last_applied = -1

    @classmethod
    def from_config(cls, cfg: GeoLayersConfig) -> "LayerController":
        store = VaultDocumentStore(
            cfg.vault_path,
            exclude_globs=cfg.exclude_globs,
            extensions=cfg.track_extensions,
        )
        return cls(store, cfg)

    @property
    def edges(self) -> EdgeGraph:
        return self.index.edges

    def begin_update(self) -> int:
        ticket = self._next_ticket
        self._next_ticket += 1
        return ticket

    def _edges_for(self, candidates: list[GeoLayer]) -> Optional[EdgeGraph]:
        if not self.cfg.show_links:
            return None
        return build_edges(candidates, self.store)

    def apply(self, ticket: int, candidates: Iterable[GeoLayer]) -> Optional[ReconcileResult]:
        """Reconcile ``candidates`` into the index unless a newer update was applied."""
        if ticket <= self._last_applied:
            logger.debug(f"Discarding stale update {ticket} (last applied {self._last_applied})")
            return None
        candidates = list(candidates)
        result = self.index.reconcile(candidates, self._edges_for(candidates))
        self._last_applied = ticket
        return result

    def refresh(self) -> IndexSummary:
        ticket = self.begin_update()
        self.store.invalidate()
        sources = self.store.list_sources()
        candidates: list[GeoLayer] = []
        for source in sources:
            candidates.extend(build_source_layers(self.store, source, self.cfg, self.rules))
        result = self.apply(ticket, candidates)
        summary = _summarize(len(sources), result)
        logger.info(
            f"Indexed {summary.scanned} files: {summary.kept} kept, {summary.added} added, {summary.removed} removed"
        )
        return summary

    def update_file(self, removed_path: Optional[str] = None, changed_path: Optional[str] = None) -> IndexSummary:
        """Re-index after one file was removed, changed or renamed.

        Layers of all other files are reused as they are; only the changed
        file is extracted again. Edges are rebuilt over the whole set.
        """
        ticket = self.begin_update()
        working = LayerIndex(self.index)
        scanned = 0
        if removed_path:
            working.delete_all_from_file(removed_path)
        if changed_path:
            working.delete_all_from_file(changed_path)
            source = self.store.source_for(changed_path)
            self.store.invalidate(source)
            if self.store.exists(source):
                scanned = 1
                for layer in build_source_layers(self.store, source, self.cfg, self.rules):
                    working.add(layer)
        result = self.apply(ticket, working.layers)
        summary = _summarize(scanned, result)
        logger.info(
            f"Updated {changed_path or removed_path}: {summary.kept} kept, {summary.added} added, {summary.removed} removed"
        )
        return summary

    def filter_layers(self, query_string: Optional[str]) -> FilterResult:
        try:
            query = Query(query_string, self.store)
        except QueryError as e:
            return FilterResult(layers=[], query_error=True, message=str(e))
        return FilterResult(layers=query.filter(self.index.layers), query_error=False)

    def move_marker(self, marker: PointMarker, lat: float, lng: float) -> IndexSummary:
        if marker.kind != LayerKind.POINT_MARKER:
            raise ValueError(f"Only point markers can be moved, not {marker.kind.value}")
        text = self.store.read_text(marker.source)
        new_text = move_marker(marker, lat, lng, text, front_matter_key=self.cfg.front_matter_key)
        self.store.write_text(marker.source, new_text)
        return self.update_file(changed_path=marker.source.path)


def _summarize(scanned: int, result: Optional[ReconcileResult]) -> IndexSummary:
    if result is None:
        return IndexSummary(scanned=scanned, kept=0, added=0, removed=0)
    return IndexSummary(
        scanned=scanned,
        kept=len(result.kept),
        added=len(result.added),
        removed=len(result.removed),
        path_handles=tuple(result.path_handles),
    )
