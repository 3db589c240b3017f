"""Display rules: queries that pick marker icons and path styles.

Exactly one rule is the preset and provides defaults. Every other rule
whose query matches a layer overrides the fields it sets, in rule order,
so later rules win per field.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from pydantic import BaseModel, Field, field_validator

from ..layers.models import GeoLayer, LayerKind
from ..layers.styles import IconOptions, PathOptions, merge_options
from ..notes.store import DocumentStore
from .engine import Query


logger = logging.getLogger(__name__)


class DisplayRule(BaseModel):
    query: str = Field(default="")
    preset: bool = Field(default=False)
    icon_details: Optional[IconOptions] = Field(default=None)
    path_options: Optional[PathOptions] = Field(default=None)

    @field_validator("query")
    @classmethod
    def _query_compiles(cls, value: str) -> str:
        Query(value)
        return value


DEFAULT_DISPLAY_RULES = [
    DisplayRule(
        query="",
        preset=True,
        icon_details=IconOptions(prefix="fas", icon="fa-circle", marker_color="blue"),
        path_options=PathOptions(color="blue", weight=3),
    ),
    DisplayRule(
        query="tag:#trip",
        icon_details=IconOptions(prefix="fas", icon="fa-hiking", marker_color="green"),
    ),
    DisplayRule(
        query="tag:#trip-water",
        icon_details=IconOptions(prefix="fas", marker_color="blue"),
    ),
    DisplayRule(
        query="tag:#dogs",
        icon_details=IconOptions(prefix="fas", icon="fa-paw"),
    ),
]


class DisplayRulesCache:
    def __init__(self, store: Optional[DocumentStore] = None):
        self.store = store
        self._rules: list[DisplayRule] = []
        self._queries: list[Query] = []

    def build(self, rules: Iterable[DisplayRule]) -> "DisplayRulesCache":
        rules = list(rules)
        self._queries = [Query(rule.query, self.store) for rule in rules]
        self._rules = rules
        return self

    def run_on(self, layer: GeoLayer) -> tuple[IconOptions, PathOptions]:
        if len(self._queries) != len(self._rules):
            raise ValueError(
                f"Display rules cache is garbled, {len(self._queries)} vs {len(self._rules)} rules"
            )
        preset = next((rule for rule in self._rules if rule.preset), None)
        icon = IconOptions()
        path = PathOptions()
        if preset is not None:
            icon = merge_options(icon, preset.icon_details)
            path = merge_options(path, preset.path_options)

        for rule, query in zip(self._rules, self._queries):
            if rule.preset:
                continue
            if query.test_layer(layer):
                icon = merge_options(icon, rule.icon_details)
                path = merge_options(path, rule.path_options)
        return icon, path


def apply_display_rules(layers: Iterable[GeoLayer], cache: DisplayRulesCache) -> None:
    """Set ``icon`` on point markers and ``style`` on geometry layers."""
    for layer in layers:
        if layer.kind == LayerKind.POINT_MARKER:
            layer.icon, _ = cache.run_on(layer)
        elif layer.kind == LayerKind.GEOMETRY:
            _, layer.style = cache.run_on(layer)
