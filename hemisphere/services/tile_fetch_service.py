"""Concurrent tile downloads with per-tile failure tolerance."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import httpx
from PIL import Image
from pydantic import BaseModel, Field

from ..config import AppConfig
from ..models.generation import FetchedTile, LayerTag, MapStyle, TileCoordinate
from ..utils.image_utils import decode_image

logger = logging.getLogger(__name__)

UrlBuilder = Callable[[TileCoordinate], str]


class TileSource(BaseModel):
    """URL template for one tile layer.

    Placeholders: {z}, {x}, {y}, and optionally {s} (subdomain), {path}
    (feed frame path), {color} (color scheme) and {options}.
    """

    template: str = Field(..., min_length=1)
    subdomains: list[str] = Field(default_factory=list)
    path: Optional[str] = None
    color: Optional[int] = None
    options: Optional[str] = None

    def url_for(self, tile: TileCoordinate) -> str:
        """Build the URL of a tile.

        Raises:
            KeyError: If the template uses a placeholder this source cannot fill
        """
        fields = {"z": tile.zoom, "x": tile.x, "y": tile.y}
        if self.subdomains:
            fields["s"] = self.subdomains[(tile.x + tile.y) % len(self.subdomains)]
        if self.path is not None:
            fields["path"] = self.path
        if self.color is not None:
            fields["color"] = self.color
        if self.options is not None:
            fields["options"] = self.options
        return self.template.format(**fields)


def radar_source(config: AppConfig, path: str) -> TileSource:
    return TileSource(
        template=config.radar_template,
        path=path,
        color=config.radar_color_scheme,
        options=config.radar_options,
    )


def satellite_source(config: AppConfig, path: str) -> TileSource:
    return TileSource(
        template=config.satellite_template,
        path=path,
        color=config.satellite_color_scheme,
        options=config.satellite_options,
    )


def base_source(config: AppConfig, style: MapStyle) -> TileSource:
    """Base layer source: the dark mosaic for blackout, else the style's snapshot tiles."""
    if style.is_mosaic:
        return TileSource(template=config.mosaic_template, subdomains=config.mosaic_subdomains)
    return TileSource(template=config.snapshot_templates[style])


@dataclass
class LayerJob:
    """Tiles of one layer to fetch."""

    layer: LayerTag
    tiles: Sequence[TileCoordinate]
    url_for: UrlBuilder


@dataclass
class LayerResult:
    """Outcome of fetching one layer."""

    layer: LayerTag
    requested: int
    tiles: list[FetchedTile] = field(default_factory=list)

    @property
    def fetched(self) -> int:
        return len(self.tiles)

    @property
    def degraded(self) -> bool:
        return self.fetched < self.requested


class TileFetchPool:
    """Downloads tiles concurrently; failed tiles are dropped, never retried."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        max_concurrency: int = 16,
        request_timeout: float = 15.0,
        connect_timeout: float = 5.0,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize the pool.

        Args:
            client: Shared async client (not closed by the pool)
            max_concurrency: Maximum requests in flight at once
            request_timeout: Per-request timeout in seconds
            connect_timeout: Connect timeout in seconds
            user_agent: Optional User-Agent for a pool-created client
        """
        self.max_concurrency = max(1, max_concurrency)
        self._timeout = httpx.Timeout(request_timeout, connect=connect_timeout)
        self._owns_client = client is None
        if client is None:
            limits = httpx.Limits(
                max_connections=self.max_concurrency,
                max_keepalive_connections=self.max_concurrency,
            )
            headers = {"User-Agent": user_agent} if user_agent else None
            client = httpx.AsyncClient(timeout=self._timeout, limits=limits, headers=headers)
        self._client = client
        self._semaphore: Optional[asyncio.Semaphore] = None

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def fetch_layer(
        self,
        tiles: Sequence[TileCoordinate],
        url_for: UrlBuilder,
        layer: LayerTag,
    ) -> list[FetchedTile]:
        """
        Fetch every tile of a layer concurrently.

        Returns only after every request has finished, successful or not.

        Args:
            tiles: Tiles to fetch
            url_for: Builds the URL of a tile
            layer: Layer tag attached to results

        Returns:
            Successfully decoded tiles, sorted by coordinate
        """
        results: list[FetchedTile] = []
        lock = asyncio.Lock()

        outcomes = await asyncio.gather(
            *(self._fetch_one(tile, url_for, layer, results, lock) for tile in tiles),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        logger.info("Downloaded %d/%d %s tiles", len(results), len(tiles), layer.value)
        return sorted(results, key=lambda fetched: fetched.tile)

    async def fetch_layers(self, jobs: Sequence[LayerJob]) -> dict[LayerTag, LayerResult]:
        """Fetch several layers at once; all requests share the concurrency limit."""
        fetched = await asyncio.gather(
            *(self.fetch_layer(job.tiles, job.url_for, job.layer) for job in jobs)
        )
        return {
            job.layer: LayerResult(layer=job.layer, requested=len(job.tiles), tiles=tiles)
            for job, tiles in zip(jobs, fetched)
        }

    async def _fetch_one(
        self,
        tile: TileCoordinate,
        url_for: UrlBuilder,
        layer: LayerTag,
        results: list[FetchedTile],
        lock: asyncio.Lock,
    ) -> None:
        try:
            url = url_for(tile)
        except (KeyError, IndexError, ValueError) as exc:
            logger.debug("Invalid %s tile URL for %s: %s", layer.value, tile, exc)
            return

        async with self._get_semaphore():
            try:
                response = await self._client.get(url, timeout=self._timeout)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                logger.debug("%s tile error for %s: %s", layer.value, tile, exc)
                return

        if response.status_code != 200:
            logger.debug("%s tile HTTP %d for %s", layer.value, response.status_code, tile)
            return

        try:
            image = await asyncio.to_thread(decode_image, response.content)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            logger.debug("Undecodable %s tile %s: %s", layer.value, tile, exc)
            return

        async with lock:
            results.append(FetchedTile(tile=tile, layer=layer, image=image))

    def _get_semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
        return self._semaphore

    async def aclose(self) -> None:
        """Close the HTTP client if the pool created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
