"""The authoritative layer index and the reconcile (diff) operation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..notes.models import SourceRef
from .edges import EdgeGraph
from .models import GeoLayer, is_same


logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    kept: list[GeoLayer] = field(default_factory=list)
    added: list[GeoLayer] = field(default_factory=list)
    removed: list[GeoLayer] = field(default_factory=list)
    # Existing layers whose id reappeared with different content
    replaced: list[GeoLayer] = field(default_factory=list)
    # Final layer set, in new-layer order
    layers: list[GeoLayer] = field(default_factory=list)
    # Rendered edge handles dropped with the previous edge graph
    path_handles: list[Any] = field(default_factory=list)


class LayerIndex:
    """Layers by id plus a per-file side index.

    Every layer in ``_by_id`` appears exactly once in ``_by_source``, under
    its own source path. Copy-constructing (``LayerIndex(other)``) shares
    the layer objects but not the lists, so the copy can be mutated while
    readers keep using the original.
    """

    def __init__(self, other: Optional["LayerIndex"] = None):
        if other is not None:
            self._by_id: dict[str, GeoLayer] = dict(other._by_id)
            self._by_source: dict[str, list[GeoLayer]] = {
                path: list(layers) for path, layers in other._by_source.items()
            }
            self.edges = other.edges.copy()
        else:
            self._by_id = {}
            self._by_source = {}
            self.edges = EdgeGraph()

    @property
    def layers(self) -> list[GeoLayer]:
        return list(self._by_id.values())

    @property
    def size(self) -> int:
        return len(self._by_id)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, layer_id: str) -> bool:
        return layer_id in self._by_id

    def get(self, layer_id: str) -> Optional[GeoLayer]:
        return self._by_id.get(layer_id)

    def find_name(self, name: str) -> Optional[GeoLayer]:
        for layer in self._by_id.values():
            if (layer.display_name and layer.display_name == name) or layer.source.basename == name:
                return layer
        return None

    def layers_by_file(self, path: str) -> list[GeoLayer]:
        return list(self._by_source.get(path, []))

    def has_layers_from_file(self, path: str) -> bool:
        return bool(self._by_source.get(path))

    def add(self, layer: GeoLayer) -> None:
        if layer.source is None or not layer.id:
            logger.warning(f"Cannot index a layer without a source or identity: {layer!r}")
            return
        existing = self._by_id.get(layer.id)
        if existing is not None:
            logger.warning(f"Layer with id {layer.id} already in the index, replacing it: {existing!r}")
            self._remove_from_source(existing)
        self._by_id[layer.id] = layer
        self._by_source.setdefault(layer.source.path, []).append(layer)

    def _remove_from_source(self, layer: GeoLayer) -> None:
        layers = self._by_source.get(layer.source.path)
        if layers is None:
            return
        layers[:] = [l for l in layers if l is not layer]
        if not layers:
            del self._by_source[layer.source.path]

    def delete(self, layer_id: str) -> list[Any]:
        """Remove one layer and its edges; returns the cleared path handles."""
        layer = self._by_id.pop(layer_id, None)
        if layer is None:
            logger.warning(f"Cannot delete layer {layer_id}: not in the index")
            return []
        self._remove_from_source(layer)
        return self.edges.remove_edges_of(layer_id)

    def delete_all_from_file(self, path: str) -> list[Any]:
        """Remove every layer of one file; returns the cleared path handles."""
        handles: list[Any] = []
        for layer in self._by_source.pop(path, []):
            self._by_id.pop(layer.id, None)
            handles.extend(self.edges.remove_edges_of(layer.id))
        return handles

    def rename_file(self, old_path: str, new_path: str) -> None:
        """Re-source a renamed file's layers; their ids change with the file name."""
        layers = self._by_source.pop(old_path, [])
        new_source = SourceRef(new_path)
        for layer in layers:
            old_id = layer.id
            self._by_id.pop(old_id, None)
            layer.source = new_source
            layer.generate_id()
            self._by_id[layer.id] = layer
            self.edges.rekey(old_id, layer.id)
        if layers:
            self._by_source.setdefault(new_path, []).extend(layers)

    def clear(self) -> list[Any]:
        self._by_id.clear()
        self._by_source.clear()
        return self.edges.clear()

    def copy(self) -> "LayerIndex":
        return LayerIndex(self)

    def reconcile(self, new_layers: Iterable[GeoLayer], new_edges: Optional[EdgeGraph] = None) -> ReconcileResult:
        """Replace the index content with ``new_layers`` in one step.

        Unchanged layers keep their existing instance. The new maps are
        built completely before they replace the current ones.
        """
        result = diff_layers(self, new_layers, new_edges)

        by_id: dict[str, GeoLayer] = {}
        by_source: dict[str, list[GeoLayer]] = {}
        for layer in result.layers:
            by_id[layer.id] = layer
            by_source.setdefault(layer.source.path, []).append(layer)
        graph = new_edges.remap(by_id) if new_edges is not None else EdgeGraph()

        result.path_handles = self.edges.clear()
        self._by_id, self._by_source, self.edges = by_id, by_source, graph
        return result


def diff_layers(
    index: LayerIndex,
    new_layers: Iterable[GeoLayer],
    new_edges: Optional[EdgeGraph] = None,
) -> ReconcileResult:
    """Compute kept/added/removed sets without touching ``index``."""
    result = ReconcileResult()
    seen: dict[str, GeoLayer] = {}

    for layer in new_layers:
        if not layer.id:
            logger.warning(f"Skipping layer without identity: {layer!r}")
            continue
        if layer.id in seen:
            logger.warning(f"Layer id {layer.id} appears twice, keeping the first: {seen[layer.id]!r}")
            continue

        existing = index.get(layer.id)
        new_degree = new_edges.degree(layer.id) if new_edges is not None else 0
        if existing is not None and is_same(
            existing, layer, existing_edges=index.edges.degree(layer.id), new_edges=new_degree
        ):
            result.kept.append(existing)
            seen[layer.id] = existing
        else:
            result.added.append(layer)
            seen[layer.id] = layer
            if existing is not None:
                result.replaced.append(existing)

    result.layers = list(seen.values())
    result.removed = [layer for layer in index.layers if layer.id not in seen]
    return result


def reconcile(
    index: LayerIndex,
    new_layers: Iterable[GeoLayer],
    new_edges: Optional[EdgeGraph] = None,
) -> ReconcileResult:
    return index.reconcile(new_layers, new_edges)
