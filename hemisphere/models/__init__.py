"""Data models for wallpaper generation."""

from .region import Region, REGION_CATALOG, get_region
from .generation import (
    FetchedTile,
    GenerationRequest,
    LayerTag,
    MapStyle,
    PixelRect,
    TileCoordinate,
    WeatherFrameSet,
)
from .events import (
    GenerationCompleted,
    GenerationEvent,
    GenerationFailed,
    GenerationStarted,
    GenerationSuperseded,
    LayerDegraded,
    RequestCoalesced,
)

__all__ = [
    "Region",
    "REGION_CATALOG",
    "get_region",
    "FetchedTile",
    "GenerationRequest",
    "LayerTag",
    "MapStyle",
    "PixelRect",
    "TileCoordinate",
    "WeatherFrameSet",
    "GenerationCompleted",
    "GenerationEvent",
    "GenerationFailed",
    "GenerationStarted",
    "GenerationSuperseded",
    "LayerDegraded",
    "RequestCoalesced",
]
