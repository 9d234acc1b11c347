"""Wallpaper generation services."""

from .errors import CompositionError, SnapshotError
from .weather_service import WeatherFeedClient, parse_weather_feed
from .tile_fetch_service import LayerJob, LayerResult, TileFetchPool, TileSource
from .composition_service import Compositor
from .snapshot_service import SnapshotService
from .generation_service import (
    AutoRefresher,
    CoordinatorState,
    GenerationCoordinator,
    WallpaperPipeline,
)

__all__ = [
    "CompositionError",
    "SnapshotError",
    "WeatherFeedClient",
    "parse_weather_feed",
    "LayerJob",
    "LayerResult",
    "TileFetchPool",
    "TileSource",
    "Compositor",
    "SnapshotService",
    "AutoRefresher",
    "CoordinatorState",
    "GenerationCoordinator",
    "WallpaperPipeline",
]
