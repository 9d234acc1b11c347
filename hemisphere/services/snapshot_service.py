"""Base map snapshots for the satellite, dark and light styles."""

import asyncio
import logging
import math
from pathlib import Path
from typing import Optional

from PIL import Image

from ..models.generation import FetchedTile, GenerationRequest, LayerTag, TileCoordinate
from ..utils.geo_utils import region_bounds, tile_set
from ..utils.image_utils import decode_image, save_image
from .composition_service import Compositor, paint_tiles
from .errors import SnapshotError
from .tile_fetch_service import TileFetchPool, TileSource

logger = logging.getLogger(__name__)


class SnapshotService:
    """Renders a style's base tiles into a canvas-sized snapshot image."""

    # Raster base tiles are 256x256 at their native resolution
    TILE_SIZE = 256

    # Keeps the tile count bounded on very large canvases
    MAX_ZOOM = 10

    def __init__(
        self,
        pool: TileFetchPool,
        cache_dir: Optional[Path] = None,
    ):
        """
        Initialize snapshot service.

        Args:
            pool: Tile pool used for downloads
            cache_dir: Directory to cache downloaded base tiles
        """
        self.pool = pool
        self.cache_dir = Path(cache_dir) if cache_dir else None
        if self.cache_dir:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    def calculate_zoom(self, request: GenerationRequest) -> int:
        """
        Zoom level whose tile resolution roughly matches the canvas.

        Never lower than the style's zoom floor for the region.
        """
        canvas_width, _ = request.canvas_size
        west, _, east, _ = region_bounds(request.region, request.aspect_ratio)
        degrees_per_pixel = (east - west) / canvas_width

        # At zoom 0 the world is one tile wide
        world_degrees_per_pixel_z0 = 360 / self.TILE_SIZE
        zoom = int(math.log2(world_degrees_per_pixel_z0 / degrees_per_pixel))

        return max(request.style.minimum_zoom, min(self.MAX_ZOOM, zoom))

    async def render(self, request: GenerationRequest, source: TileSource) -> Image.Image:
        """
        Build the base snapshot for a request.

        Args:
            request: Generation snapshot; must have a canvas size
            source: Base tile source for the request's style

        Returns:
            RGBA image of the request's canvas size

        Raises:
            SnapshotError: If there is no canvas size or no tile could be fetched
        """
        if request.canvas_size is None:
            raise SnapshotError("No target size available for the snapshot")

        zoom = self.calculate_zoom(request)
        tiles = tile_set(request.region, request.aspect_ratio, minimum_zoom=zoom)
        cached = await asyncio.to_thread(self._load_cached, request, tiles)
        cached_tiles = {c.tile for c in cached}
        missing = [tile for tile in tiles if tile not in cached_tiles]

        logger.info(
            "Snapshot for %s: %d tiles at zoom %d (%d cached)",
            request.style.value, len(tiles), tiles[0].zoom, len(cached),
        )

        fetched = await self.pool.fetch_layer(missing, source.url_for, LayerTag.BASE) if missing else []
        if fetched:
            await asyncio.to_thread(self._store_cached, request, fetched)

        base_tiles = cached + fetched
        if not base_tiles:
            raise SnapshotError(f"No {request.style.value} base tiles could be fetched")

        try:
            canvas = Image.new("RGBA", request.canvas_size, Compositor.BACKGROUND_COLOR)
        except (ValueError, MemoryError) as exc:
            raise SnapshotError(f"Cannot allocate snapshot canvas: {exc}") from exc
        await asyncio.to_thread(paint_tiles, canvas, base_tiles, request.region)
        return canvas

    def _cache_path(self, request: GenerationRequest, tile: TileCoordinate) -> Path:
        return self.cache_dir / request.style.value / f"{tile.zoom}_{tile.x}_{tile.y}.png"

    def _load_cached(
        self,
        request: GenerationRequest,
        tiles: list[TileCoordinate],
    ) -> list[FetchedTile]:
        if not self.cache_dir:
            return []

        loaded = []
        for tile in tiles:
            path = self._cache_path(request, tile)
            if not path.exists():
                continue
            try:
                image = decode_image(path.read_bytes())
            except (OSError, ValueError, Image.DecompressionBombError) as exc:
                logger.warning("Ignoring unreadable cached tile %s: %s", path, exc)
                continue
            loaded.append(FetchedTile(tile=tile, layer=LayerTag.BASE, image=image))
        return loaded

    def _store_cached(self, request: GenerationRequest, tiles: list[FetchedTile]) -> None:
        if not self.cache_dir:
            return
        for fetched in tiles:
            path = self._cache_path(request, fetched.tile)
            try:
                save_image(fetched.image, path)
            except OSError as exc:
                logger.warning("Could not cache tile %s: %s", path, exc)
