"""Configuration management for the wallpaper generator."""

import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field

from .models.generation import MapStyle

# Base layer templates used to build the snapshot for non-mosaic styles
DEFAULT_SNAPSHOT_TEMPLATES = {
    MapStyle.SATELLITE: (
        "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}"
    ),
    MapStyle.DARK: (
        "https://server.arcgisonline.com/ArcGIS/rest/services/Canvas/World_Dark_Gray_Base/MapServer/tile/{z}/{y}/{x}"
    ),
    MapStyle.LIGHT: (
        "https://server.arcgisonline.com/ArcGIS/rest/services/Canvas/World_Light_Gray_Base/MapServer/tile/{z}/{y}/{x}"
    ),
}


class AppConfig(BaseModel):
    """Application-level configuration."""

    # Weather feed
    feed_url: str = Field(
        default="https://api.rainviewer.com/public/weather-maps.json",
        description="Weather frame metadata feed",
    )

    # Tile templates
    radar_template: str = Field(
        default="https://tilecache.rainviewer.com{path}/512/{z}/{x}/{y}/{color}/{options}.png",
        description="Radar overlay tile URL template",
    )
    radar_color_scheme: int = Field(default=2, description="Radar color scheme id")
    radar_options: str = Field(default="1_1", description="Radar smoothing/snow flags")
    satellite_template: str = Field(
        default="https://tilecache.rainviewer.com{path}/512/{z}/{x}/{y}/{color}/{options}.png",
        description="Infrared satellite overlay tile URL template",
    )
    satellite_color_scheme: int = Field(default=0, description="Infrared color scheme id")
    satellite_options: str = Field(default="0_0", description="Infrared smoothing/snow flags")
    mosaic_template: str = Field(
        default="https://{s}.basemaps.cartocdn.com/dark_all/{z}/{x}/{y}@2x.png",
        description="Base tile URL template for the blackout style",
    )
    mosaic_subdomains: list[str] = Field(default_factory=lambda: ["a", "b", "c", "d"])
    snapshot_templates: dict[MapStyle, str] = Field(
        default_factory=lambda: dict(DEFAULT_SNAPSHOT_TEMPLATES),
        description="Base tile URL template per snapshot style",
    )

    # Network
    request_timeout: float = Field(default=15.0, gt=0, description="Per-request timeout (s)")
    connect_timeout: float = Field(default=5.0, gt=0, description="Connect timeout (s)")
    max_concurrency: int = Field(default=16, ge=1, description="Concurrent tile downloads")
    user_agent: str = Field(default="hemisphere/0.1.0", description="HTTP User-Agent")

    # Generation defaults
    default_style: MapStyle = Field(default=MapStyle.SATELLITE)
    default_region: str = Field(default="continental-us", description="Catalog region")
    radar_enabled: bool = Field(default=True)
    satellite_enabled: bool = Field(default=False)
    display_width: int = Field(default=2560, gt=0, description="Fallback display width")
    display_height: int = Field(default=1440, gt=0, description="Fallback display height")
    scale_factor: float = Field(default=1.0, gt=0, description="Device pixels per point")
    refresh_interval: float = Field(default=600.0, gt=0, description="Auto-refresh interval (s)")
    apply_superseded_results: bool = Field(
        default=False,
        description="Apply a finished result even when a newer request is pending",
    )

    # Directories
    cache_dir: Path = Field(
        default=Path.home() / ".cache" / "hemisphere",
        description="Cache directory for downloaded base tiles",
    )
    output_dir: Path = Field(
        default=Path.home() / ".local" / "share" / "hemisphere",
        description="Directory wallpapers are written to",
    )

    @classmethod
    def load(cls) -> "AppConfig":
        """Load configuration from environment and defaults."""
        overrides = {}
        env_map = {
            "HEMISPHERE_OUTPUT_DIR": "output_dir",
            "HEMISPHERE_CACHE_DIR": "cache_dir",
            "HEMISPHERE_FEED_URL": "feed_url",
            "HEMISPHERE_REFRESH_INTERVAL": "refresh_interval",
            "HEMISPHERE_MAX_CONCURRENCY": "max_concurrency",
            "HEMISPHERE_REQUEST_TIMEOUT": "request_timeout",
        }
        for env_name, field_name in env_map.items():
            value = os.environ.get(env_name)
            if value:
                overrides[field_name] = value
        return cls(**overrides)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AppConfig":
        """Load configuration from a YAML file layered over the environment."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        base = cls.load().model_dump()
        base.update(data)
        return cls(**base)

    @property
    def display_size(self) -> tuple[int, int]:
        return (self.display_width, self.display_height)

    def ensure_directories(self) -> None:
        """Create necessary directories."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get or create global configuration."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config
