"""Web Mercator tile math for regions and canvases.

Everything here is pure: no I/O and no shared state. The canvas is treated
as a plain lat/lon rectangle around the region center, and each tile is
stretched into the rectangle its geographic bounds cover.
"""

import math

from ..models.generation import PixelRect, TileCoordinate
from ..models.region import Region

# Latitude spans (degrees) at or above which a zoom level is used
ZOOM_THRESHOLDS: tuple[tuple[float, int], ...] = (
    (30, 4),
    (15, 5),
    (8, 6),
    (4, 7),
)
MAX_TABLE_ZOOM = 8

# Fraction added to each half-span so edge tiles are always fetched
TILE_SET_BUFFER = 0.05

# Web Mercator is undefined at the poles
MAX_MERCATOR_LAT = 85.05112878


def zoom_level(lat_span: float, minimum_zoom: int = 4) -> int:
    """
    Pick a tile zoom level for a latitude span.

    Args:
        lat_span: Latitude span of the view in degrees
        minimum_zoom: Floor applied after the table lookup

    Returns:
        Zoom level
    """
    zoom = MAX_TABLE_ZOOM
    for threshold, table_zoom in ZOOM_THRESHOLDS:
        if lat_span >= threshold:
            zoom = table_zoom
            break
    return max(zoom, minimum_zoom)


def _clamp_index(value: int, zoom: int) -> int:
    return max(0, min(2 ** zoom - 1, value))


def lon_to_tile_x(lon: float, zoom: int) -> int:
    """Convert longitude to tile X coordinate."""
    n = 2 ** zoom
    return _clamp_index(int((lon + 180) / 360 * n), zoom)


def lat_to_tile_y(lat: float, zoom: int) -> int:
    """Convert latitude to tile Y coordinate."""
    n = 2 ** zoom
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    lat_rad = math.radians(lat)
    return _clamp_index(int((1 - math.asinh(math.tan(lat_rad)) / math.pi) / 2 * n), zoom)


def geo_to_tile(lat: float, lon: float, zoom: int) -> tuple[int, int]:
    """Return the (x, y) index of the tile containing a coordinate."""
    return (lon_to_tile_x(lon, zoom), lat_to_tile_y(lat, zoom))


def tile_to_lon(x: int, zoom: int) -> float:
    """Longitude of a tile's western edge."""
    n = 2 ** zoom
    return x / n * 360 - 180


def tile_to_lat(y: int, zoom: int) -> float:
    """Latitude of a tile's northern edge."""
    n = 2 ** zoom
    lat_rad = math.atan(math.sinh(math.pi * (1 - 2 * y / n)))
    return math.degrees(lat_rad)


def tile_bounds(tile: TileCoordinate) -> tuple[float, float, float, float]:
    """Return (west, south, east, north) of a tile in degrees."""
    return (
        tile_to_lon(tile.x, tile.zoom),
        tile_to_lat(tile.y + 1, tile.zoom),
        tile_to_lon(tile.x + 1, tile.zoom),
        tile_to_lat(tile.y, tile.zoom),
    )


def region_bounds(
    region: Region,
    aspect_ratio: float,
    buffer: float = 0.0,
) -> tuple[float, float, float, float]:
    """
    Bounding box of a region as shown on a screen of the given aspect ratio.

    The longitude span is widened by the aspect ratio so wide screens are
    not stretched.

    Args:
        region: Region to bound
        aspect_ratio: Screen width / height
        buffer: Fraction added to each half-span

    Returns:
        (west, south, east, north) in degrees
    """
    half_lat = region.span / 2 * (1 + buffer)
    half_lon = region.span * aspect_ratio / 2 * (1 + buffer)
    return (
        region.lon - half_lon,
        region.lat - half_lat,
        region.lon + half_lon,
        region.lat + half_lat,
    )


def tile_set(
    region: Region,
    aspect_ratio: float,
    minimum_zoom: int = 4,
) -> list[TileCoordinate]:
    """
    Compute every tile needed to cover a region on screen.

    Longitudes are clamped to the map edges, so a region crossing the
    antimeridian is covered only up to longitude 180 (or -180); tiles from the other
    side of the wrap are not included.

    Args:
        region: Region to cover
        aspect_ratio: Screen width / height
        minimum_zoom: Zoom floor (higher for mosaic base layers)

    Returns:
        Sorted list of tiles covering the buffered region
    """
    zoom = zoom_level(region.span, minimum_zoom)
    west, south, east, north = region_bounds(region, aspect_ratio, buffer=TILE_SET_BUFFER)

    # Tile y grows southward, so the north-west corner is the minimum
    min_x, min_y = geo_to_tile(north, west, zoom)
    max_x, max_y = geo_to_tile(south, east, zoom)

    tiles = []
    for x in range(min_x, max_x + 1):
        for y in range(min_y, max_y + 1):
            tiles.append(TileCoordinate(x=x, y=y, zoom=zoom))

    return sorted(tiles)


def tile_to_pixel_rect(
    tile: TileCoordinate,
    region: Region,
    canvas_size: tuple[int, int],
) -> PixelRect:
    """
    Map a tile's geographic bounds onto the canvas.

    Args:
        tile: Tile to place
        region: Region the canvas shows
        canvas_size: (width, height) in pixels; also defines the aspect ratio

    Returns:
        PixelRect in canvas coordinates (may extend past the canvas)
    """
    width, height = canvas_size
    west, _, east, north = region_bounds(region, width / height)
    lon_span = east - west
    lat_span = region.span

    tile_west, tile_south, tile_east, tile_north = tile_bounds(tile)

    return PixelRect(
        left=(tile_west - west) / lon_span * width,
        top=(north - tile_north) / lat_span * height,
        right=(tile_east - west) / lon_span * width,
        bottom=(north - tile_south) / lat_span * height,
    )
