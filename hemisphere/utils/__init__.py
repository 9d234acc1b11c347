"""Utility functions for wallpaper generation."""

from .image_utils import (
    apply_opacity,
    decode_image,
    draw_clipped,
    resize_image,
    save_image,
)
from .geo_utils import (
    geo_to_tile,
    region_bounds,
    tile_bounds,
    tile_set,
    tile_to_pixel_rect,
    zoom_level,
)

__all__ = [
    "apply_opacity",
    "decode_image",
    "draw_clipped",
    "resize_image",
    "save_image",
    "geo_to_tile",
    "region_bounds",
    "tile_bounds",
    "tile_set",
    "tile_to_pixel_rect",
    "zoom_level",
]
