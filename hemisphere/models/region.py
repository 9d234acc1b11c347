"""Geographic region model and the built-in region catalog."""

from typing import Union

from pydantic import BaseModel, ConfigDict, Field


class Region(BaseModel):
    """A named map region described by its center and angular span."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Display name")
    lat: float = Field(..., ge=-90, le=90, description="Center latitude")
    lon: float = Field(..., ge=-180, le=180, description="Center longitude")
    span: float = Field(
        ...,
        gt=0,
        le=180,
        description="Angular span in degrees (latitude; longitude before aspect correction)",
    )

    @property
    def slug(self) -> str:
        """Lowercase, hyphenated form of the name (e.g. 'pacific-northwest')."""
        return "-".join(self.name.lower().split())

    @property
    def center(self) -> tuple[float, float]:
        """Return center point (lat, lon)."""
        return (self.lat, self.lon)


REGION_CATALOG: tuple[Region, ...] = (
    Region(name="Continental US", lat=39.8, lon=-98.5, span=35),
    Region(name="Northeast", lat=42.5, lon=-73.5, span=12),
    Region(name="Southeast", lat=33.0, lon=-84.0, span=12),
    Region(name="Midwest", lat=41.5, lon=-89.0, span=12),
    Region(name="Southwest", lat=34.0, lon=-111.0, span=12),
    Region(name="West Coast", lat=37.5, lon=-121.0, span=12),
    Region(name="Pacific Northwest", lat=46.5, lon=-122.5, span=12),
    Region(name="Texas", lat=31.5, lon=-99.5, span=12),
    Region(name="Florida", lat=28.0, lon=-82.5, span=8),
    Region(name="Alabama", lat=32.8, lon=-86.8, span=6),
)


def get_region(key: Union[int, str]) -> Region:
    """
    Look up a catalog region.

    Args:
        key: Catalog index, exact name, or slug ("pacific-northwest").
            Numeric strings are treated as indices.

    Returns:
        The matching Region

    Raises:
        ValueError: If no region matches
    """
    if isinstance(key, str) and key.strip().isdigit():
        key = int(key.strip())

    if isinstance(key, int):
        if 0 <= key < len(REGION_CATALOG):
            return REGION_CATALOG[key]
        raise ValueError(f"Region index out of range: {key} (0-{len(REGION_CATALOG) - 1})")

    wanted = "-".join(key.lower().split())
    for region in REGION_CATALOG:
        if region.name == key or region.slug == wanted:
            return region

    known = ", ".join(r.slug for r in REGION_CATALOG)
    raise ValueError(f"Unknown region '{key}'. Known regions: {known}")
