"""Layout configuration.

All pixel constants used by the layout live on ``LayoutConfig``.  The
defaults match a 200x130 canvas thumbnail.  A config can be loaded from a
YAML file, either explicitly or through the ``CANVAS_LAYOUT_CONFIG``
environment variable:

    cell_width: 200
    cell_height: 130
    ring_padding: 20
"""

from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

CONFIG_ENV_VAR = "CANVAS_LAYOUT_CONFIG"


class LayoutConfig(BaseModel):
    """Pixel constants for the layout.

    Attributes:
        cell_width:     Width of a canvas thumbnail.
        cell_height:    Height of a canvas thumbnail.
        cell_diameter:  Arc length reserved per canvas.  Thumbnails are
                        treated as circles by the ring layout, so this
                        defaults to the thumbnail diagonal.
        ring_padding:   Extra gap between two adjacent rings.
        unit_padding:   Added to the thumbnail size to get the size of one
                        cell of the unit grid.
        layout_buffer:  Margin around a cluster's tight bounding box.
    """
    cell_width: int = Field(default=200, gt=0)
    cell_height: int = Field(default=130, gt=0)
    cell_diameter: Optional[int] = Field(default=None, gt=0)
    ring_padding: int = Field(default=20, ge=0)
    unit_padding: int = Field(default=20, ge=0)
    layout_buffer: int = Field(default=10, ge=0)

    @property
    def diameter(self) -> int:
        if self.cell_diameter is not None:
            return self.cell_diameter
        return int(math.sqrt(self.cell_width * self.cell_width + self.cell_height * self.cell_height))

    @property
    def ring_separation(self) -> int:
        return self.ring_padding + self.diameter

    @property
    def unit_width(self) -> int:
        return self.cell_width + self.unit_padding

    @property
    def unit_height(self) -> int:
        return self.cell_height + self.unit_padding


DEFAULT_CONFIG = LayoutConfig()


def parse_config(yaml_str: str) -> LayoutConfig:
    """Parse a YAML string into a LayoutConfig.  Empty input gives the defaults."""
    data = yaml.safe_load(yaml_str)
    if not data:
        return LayoutConfig()
    if not isinstance(data, dict):
        raise ValueError("Layout config must be a YAML mapping")
    # allow the settings to sit under a top-level "layout" key
    if "layout" in data and isinstance(data["layout"], dict):
        data = data["layout"]
    return LayoutConfig(**data)


def load_config(path: str) -> LayoutConfig:
    """Load a LayoutConfig from a YAML file."""
    return parse_config(Path(path).read_text())


def config_from_env() -> LayoutConfig:
    """Load the config named by ``CANVAS_LAYOUT_CONFIG``, or the defaults."""
    path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return LayoutConfig()
    return load_config(path)
