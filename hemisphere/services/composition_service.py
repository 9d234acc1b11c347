"""Composition of base and weather layers into the final wallpaper."""

import logging
from typing import Iterable, Optional

from PIL import Image

from ..models.generation import FetchedTile, GenerationRequest, LayerTag
from ..models.region import Region
from ..utils.geo_utils import tile_to_pixel_rect
from ..utils.image_utils import draw_clipped, resize_image
from .errors import CompositionError

logger = logging.getLogger(__name__)


def paint_tiles(
    canvas: Image.Image,
    tiles: Iterable[FetchedTile],
    region: Region,
    opacity: float = 1.0,
) -> int:
    """
    Draw tiles at their projected rectangles.

    Tiles are drawn in coordinate order so the result does not depend on
    the order downloads finished in.

    Args:
        canvas: RGBA canvas, modified in place
        tiles: Decoded tiles
        region: Region the canvas shows
        opacity: Alpha multiplier for every tile

    Returns:
        Number of tiles that touched the canvas
    """
    drawn = 0
    for fetched in sorted(tiles, key=lambda t: t.tile):
        rect = tile_to_pixel_rect(fetched.tile, region, canvas.size)
        if draw_clipped(canvas, fetched.image, rect.to_box(), opacity):
            drawn += 1
    return drawn


class Compositor:
    """Draws base, satellite and radar layers onto one canvas."""

    # Dark fill behind the mosaic; covers gaps left by missing tiles
    BACKGROUND_COLOR = (26, 26, 26, 255)

    SATELLITE_OPACITY = 0.5
    RADAR_OPACITY = 0.7

    # Radar last so it is visually on top
    OVERLAY_ORDER = (
        (LayerTag.SATELLITE, SATELLITE_OPACITY),
        (LayerTag.RADAR, RADAR_OPACITY),
    )

    def compose(
        self,
        request: GenerationRequest,
        *,
        snapshot: Optional[Image.Image] = None,
        base_tiles: Iterable[FetchedTile] = (),
        overlays: Iterable[FetchedTile] = (),
    ) -> Image.Image:
        """
        Build the final image for a request.

        Args:
            request: Generation snapshot (style, region, canvas size)
            snapshot: Ready-made base image for non-mosaic styles
            base_tiles: Base tiles for the mosaic style
            overlays: Satellite and radar tiles; other layers are ignored

        Returns:
            RGB image of the request's canvas size

        Raises:
            CompositionError: If there is no canvas size, no base, or the
                canvas cannot be allocated
        """
        canvas_size = request.canvas_size
        if canvas_size is None:
            raise CompositionError("No target size available for the canvas")

        base_tiles = list(base_tiles)
        overlays = list(overlays)

        if request.style.is_mosaic:
            if not base_tiles:
                raise CompositionError("No base tiles available for the mosaic")
            canvas = self._new_canvas(canvas_size, self.BACKGROUND_COLOR)
            drawn = paint_tiles(canvas, base_tiles, request.region)
            logger.debug("Drew %d/%d base tiles", drawn, len(base_tiles))
        else:
            if snapshot is None:
                raise CompositionError(f"No base snapshot for style '{request.style.value}'")
            canvas = self._new_canvas(canvas_size, (0, 0, 0, 255))
            canvas.alpha_composite(resize_image(snapshot.convert("RGBA"), canvas_size))

        for layer, opacity in self.OVERLAY_ORDER:
            layer_tiles = [t for t in overlays if t.layer is layer]
            if layer_tiles:
                drawn = paint_tiles(canvas, layer_tiles, request.region, opacity)
                logger.debug("Drew %d/%d %s tiles", drawn, len(layer_tiles), layer.value)

        return canvas.convert("RGB")

    def _new_canvas(self, size: tuple[int, int], color: tuple[int, int, int, int]) -> Image.Image:
        try:
            return Image.new("RGBA", size, color)
        except (ValueError, MemoryError) as exc:
            raise CompositionError(f"Cannot allocate {size[0]}x{size[1]} canvas: {exc}") from exc
