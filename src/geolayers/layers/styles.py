"""Typed icon and path styling produced by display rules."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class IconOptions(BaseModel):
    """Marker icon parameters. Unset fields inherit from earlier rules."""

    prefix: Optional[str] = Field(default=None)
    icon: Optional[str] = Field(default=None)
    icon_color: Optional[str] = Field(default=None)
    marker_color: Optional[str] = Field(default=None)
    shape: Optional[str] = Field(default=None)
    icon_url: Optional[str] = Field(default=None)

    model_config = {"frozen": True}


class PathOptions(BaseModel):
    """Stroke and fill parameters for geometry layers and edges."""

    color: Optional[str] = Field(default=None)
    weight: Optional[float] = Field(default=None)
    opacity: Optional[float] = Field(default=None)
    fill_color: Optional[str] = Field(default=None)
    fill_opacity: Optional[float] = Field(default=None)
    dash_array: Optional[str] = Field(default=None)

    model_config = {"frozen": True}


def merge_options(base, override):
    """Return ``base`` with every field ``override`` sets replacing it."""
    if override is None:
        return base
    return base.model_copy(update=override.model_dump(exclude_none=True))
