"""Value types flowing through one wallpaper generation."""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .region import Region


class MapStyle(str, Enum):
    """Base map style."""

    SATELLITE = "satellite"
    DARK = "dark"
    LIGHT = "light"
    BLACKOUT = "blackout"  # Built from a dark tile mosaic, no snapshot

    @property
    def is_mosaic(self) -> bool:
        """True when the base layer is assembled from fetched tiles."""
        return self is MapStyle.BLACKOUT

    @property
    def minimum_zoom(self) -> int:
        """Zoom floor used when computing the tile set for this style."""
        # Mosaic bases need finer tiles to look sharp at desktop resolution
        return 5 if self.is_mosaic else 4


class LayerTag(str, Enum):
    """Visual stratum a tile belongs to."""

    BASE = "base"
    RADAR = "radar"
    SATELLITE = "satellite"


class GenerationRequest(BaseModel):
    """Immutable snapshot of everything one generation needs."""

    model_config = ConfigDict(frozen=True)

    style: MapStyle = Field(default=MapStyle.SATELLITE, description="Base map style")
    region: Region = Field(..., description="Region to render")
    target_size: Optional[tuple[int, int]] = Field(
        default=None,
        description="Display size in points (width, height); None if unknown",
    )
    scale_factor: float = Field(default=1.0, gt=0, description="Device pixels per point")
    radar_enabled: bool = Field(default=True, description="Draw the radar overlay")
    satellite_enabled: bool = Field(default=False, description="Draw the infrared overlay")

    @field_validator("target_size")
    @classmethod
    def _positive_size(cls, value: Optional[tuple[int, int]]) -> Optional[tuple[int, int]]:
        if value is not None and (value[0] <= 0 or value[1] <= 0):
            raise ValueError(f"target_size must be positive, got {value}")
        return value

    @property
    def canvas_size(self) -> Optional[tuple[int, int]]:
        """Pixel size of the output image, or None without a target size."""
        if self.target_size is None:
            return None
        width, height = self.target_size
        return (
            max(1, round(width * self.scale_factor)),
            max(1, round(height * self.scale_factor)),
        )

    @property
    def aspect_ratio(self) -> float:
        """Width / height of the target display (1.0 when unknown)."""
        if self.target_size is None:
            return 1.0
        width, height = self.target_size
        return width / height

    def describe(self) -> str:
        """Short human-readable summary used in log lines."""
        return (
            f"style={self.style.value}, region={self.region.name}, "
            f"radar={self.radar_enabled}, satellite={self.satellite_enabled}"
        )


@dataclass(frozen=True, order=True)
class TileCoordinate:
    """Slippy-map tile address."""

    x: int
    y: int
    zoom: int

    def __str__(self) -> str:
        return f"{self.zoom}/{self.x}/{self.y}"


@dataclass(frozen=True)
class WeatherFrameSet:
    """Latest tile path fragments per weather layer; either may be absent."""

    radar_path: Optional[str] = None
    satellite_path: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.radar_path is None and self.satellite_path is None

    def restricted_to(self, radar: bool, satellite: bool) -> "WeatherFrameSet":
        """Drop paths for layers that are not enabled."""
        return WeatherFrameSet(
            radar_path=self.radar_path if radar else None,
            satellite_path=self.satellite_path if satellite else None,
        )


@dataclass
class FetchedTile:
    """A successfully downloaded and fully decoded tile."""

    tile: TileCoordinate
    layer: LayerTag
    image: Image.Image


class PixelRect(NamedTuple):
    """Rectangle in canvas pixels (origin top-left, y down)."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def to_box(self) -> tuple[int, int, int, int]:
        """Round edges to an integer (left, top, right, bottom) box."""
        return (round(self.left), round(self.top), round(self.right), round(self.bottom))
