"""Wallpaper generation orchestration.

This module coordinates one end-to-end generation and serializes requests:
1. Fetch the weather feed and keep frames for enabled layers
2. Compute the tile set for the region and display aspect ratio
3. Fetch base (or build the base snapshot) and overlay tiles concurrently
4. Composite everything once all fetches have returned
5. Hand the image to the apply collaborator, unless a newer request is waiting
"""

import asyncio
import inspect
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import httpx
import yaml
from PIL import Image

from ..config import AppConfig
from ..events import EventBus
from ..models.events import (
    GenerationCompleted,
    GenerationFailed,
    GenerationStarted,
    GenerationSuperseded,
    LayerDegraded,
    RequestCoalesced,
)
from ..models.generation import GenerationRequest, LayerTag, TileCoordinate, WeatherFrameSet
from ..utils.geo_utils import tile_set
from .composition_service import Compositor
from .errors import CompositionError, SnapshotError
from .snapshot_service import SnapshotService
from .tile_fetch_service import (
    LayerJob,
    LayerResult,
    TileFetchPool,
    base_source,
    radar_source,
    satellite_source,
)
from .weather_service import WeatherFeedClient

logger = logging.getLogger(__name__)

ApplyResult = Callable[[Image.Image, GenerationRequest], Union[None, Awaitable[None]]]


class WallpaperPipeline:
    """Runs one generation from feed fetch to final image."""

    def __init__(
        self,
        config: AppConfig,
        pool: TileFetchPool,
        feed_client: WeatherFeedClient,
        snapshot_service: Optional[SnapshotService] = None,
        compositor: Optional[Compositor] = None,
        events: Optional[EventBus] = None,
    ):
        self.config = config
        self.pool = pool
        self.feed_client = feed_client
        self.snapshot_service = snapshot_service or SnapshotService(pool)
        self.compositor = compositor or Compositor()
        self.events = events or EventBus()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        client: Optional[httpx.AsyncClient] = None,
        events: Optional[EventBus] = None,
        use_cache: bool = True,
    ) -> "WallpaperPipeline":
        """Build a pipeline whose services share one HTTP client."""
        pool = TileFetchPool(
            client=client,
            max_concurrency=config.max_concurrency,
            request_timeout=config.request_timeout,
            connect_timeout=config.connect_timeout,
            user_agent=config.user_agent,
        )
        feed_client = WeatherFeedClient(
            feed_url=config.feed_url,
            client=pool.client,
            timeout=config.request_timeout,
            user_agent=config.user_agent,
        )
        snapshot_service = SnapshotService(pool, cache_dir=config.cache_dir if use_cache else None)
        return cls(config, pool, feed_client, snapshot_service=snapshot_service, events=events)

    async def aclose(self) -> None:
        await self.pool.aclose()

    async def generate(self, request: GenerationRequest) -> Image.Image:
        """
        Produce the composited image for a request.

        Args:
            request: Immutable generation snapshot

        Returns:
            RGB image of the request's canvas size

        Raises:
            CompositionError: If the image cannot be composed
            SnapshotError: If a non-mosaic style has no base snapshot
        """
        if request.canvas_size is None:
            raise CompositionError("No target size available for the canvas")

        frames = await self.feed_client.fetch()
        active = frames.restricted_to(radar=request.radar_enabled, satellite=request.satellite_enabled)
        self._report_missing_frames(request, active)

        tiles = tile_set(request.region, request.aspect_ratio, request.style.minimum_zoom)
        logger.info(
            "Region %s: %d tiles at zoom %d for %dx%d canvas",
            request.region.name, len(tiles), tiles[0].zoom, *request.canvas_size,
        )

        jobs = self._overlay_jobs(active, tiles)
        snapshot = None
        if request.style.is_mosaic:
            jobs.insert(0, LayerJob(LayerTag.BASE, tiles, base_source(self.config, request.style).url_for))
            results = await self.pool.fetch_layers(jobs)
        else:
            # Full barrier: both must finish before either outcome is used
            snapshot, results = await asyncio.gather(
                self.snapshot_service.render(request, base_source(self.config, request.style)),
                self.pool.fetch_layers(jobs),
                return_exceptions=True,
            )
            for outcome in (snapshot, results):
                if isinstance(outcome, BaseException):
                    raise outcome

        self._report_degraded(results)

        base_tiles = results[LayerTag.BASE].tiles if LayerTag.BASE in results else []
        overlays = [
            fetched
            for layer, result in results.items()
            if layer is not LayerTag.BASE
            for fetched in result.tiles
        ]
        return await asyncio.to_thread(
            self.compositor.compose,
            request,
            snapshot=snapshot,
            base_tiles=base_tiles,
            overlays=overlays,
        )

    def _overlay_jobs(self, frames: WeatherFrameSet, tiles: list[TileCoordinate]) -> list[LayerJob]:
        jobs = []
        if frames.satellite_path is not None:
            source = satellite_source(self.config, frames.satellite_path)
            jobs.append(LayerJob(LayerTag.SATELLITE, tiles, source.url_for))
        if frames.radar_path is not None:
            source = radar_source(self.config, frames.radar_path)
            jobs.append(LayerJob(LayerTag.RADAR, tiles, source.url_for))
        return jobs

    def _report_missing_frames(self, request: GenerationRequest, frames: WeatherFrameSet) -> None:
        if request.radar_enabled and frames.radar_path is None:
            logger.info("No radar frame available")
            self.events.publish(LayerDegraded(LayerTag.RADAR, 0, 0, "no frame in weather feed"))
        if request.satellite_enabled and frames.satellite_path is None:
            logger.info("No satellite path available")
            self.events.publish(LayerDegraded(LayerTag.SATELLITE, 0, 0, "no frame in weather feed"))

    def _report_degraded(self, results: dict[LayerTag, LayerResult]) -> None:
        for result in results.values():
            if result.degraded:
                logger.warning(
                    "Layer %s degraded: %d/%d tiles", result.layer.value, result.fetched, result.requested
                )
                self.events.publish(
                    LayerDegraded(result.layer, result.fetched, result.requested, "tile fetch failures")
                )


class CoordinatorState(str, Enum):
    """Generation coordinator state."""

    IDLE = "idle"
    GENERATING = "generating"


class GenerationCoordinator:
    """Serializes generations: one in flight, at most one pending.

    Requests arriving while a generation runs collapse into a single pending
    slot holding the newest one. A finished result is only applied if no
    newer request is waiting, so a stale image never lands after a fresher
    request has been made.
    """

    def __init__(
        self,
        pipeline: WallpaperPipeline,
        apply_result: ApplyResult,
        events: Optional[EventBus] = None,
        apply_superseded: bool = False,
    ):
        """
        Initialize the coordinator.

        Args:
            pipeline: Object with an async generate(request) -> Image method
            apply_result: Called with (image, request) after a successful
                generation; may be a coroutine function
            events: Event bus for structured notifications
            apply_superseded: Apply results even when a newer request is pending
        """
        self.pipeline = pipeline
        self.apply_result = apply_result
        self.events = events or EventBus()
        self.apply_superseded = apply_superseded

        self.state = CoordinatorState.IDLE
        self.pending_requested = False
        self.requested_epoch = 0
        self.generations_started = 0

        self._pending: Optional[tuple[int, GenerationRequest]] = None
        self._driver: Optional[asyncio.Task] = None
        self._idle: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def submit(self, request: GenerationRequest) -> int:
        """
        Request a generation. Must be called from the event loop thread.

        Args:
            request: Snapshot of the configuration to render

        Returns:
            Epoch number assigned to the request
        """
        self._loop = asyncio.get_running_loop()
        self.requested_epoch += 1
        epoch = self.requested_epoch

        if self.state is CoordinatorState.GENERATING:
            logger.info("Already generating, queuing refresh (epoch %d)", epoch)
            self._pending = (epoch, request)
            self.pending_requested = True
            self.events.publish(RequestCoalesced(epoch, request))
            return epoch

        self.state = CoordinatorState.GENERATING
        self.pending_requested = False
        self._idle_event().clear()
        self._driver = asyncio.create_task(self._drive(epoch, request))
        return epoch

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Bind the loop used by submit_threadsafe before any submit happened."""
        self._loop = loop

    def submit_threadsafe(self, request: GenerationRequest) -> None:
        """Schedule submit() on the coordinator's loop from another thread."""
        if self._loop is None:
            raise RuntimeError("Coordinator is not attached to an event loop")
        self._loop.call_soon_threadsafe(self.submit, request)

    async def wait_idle(self) -> None:
        """Wait until no generation is running and none is pending."""
        if self.state is CoordinatorState.IDLE:
            return
        await self._idle_event().wait()

    def _idle_event(self) -> asyncio.Event:
        if self._idle is None:
            self._idle = asyncio.Event()
            self._idle.set()
        return self._idle

    async def _drive(self, epoch: int, request: GenerationRequest) -> None:
        try:
            while True:
                await self._run_one(epoch, request)
                if self._pending is None:
                    break
                epoch, request = self._pending
                self._pending = None
                self.pending_requested = False
                logger.info("Processing pending refresh (epoch %d)", epoch)
        finally:
            self.state = CoordinatorState.IDLE
            self._idle_event().set()

    async def _run_one(self, epoch: int, request: GenerationRequest) -> None:
        self.generations_started += 1
        logger.info("Generating wallpaper (epoch %d, %s)", epoch, request.describe())
        self.events.publish(GenerationStarted(epoch, request))
        start = time.monotonic()

        try:
            image = await self.pipeline.generate(request)
        except (CompositionError, SnapshotError) as exc:
            logger.error("Generation %d failed: %s", epoch, exc)
            self.events.publish(GenerationFailed(epoch, request, str(exc)))
            return
        except Exception as exc:
            logger.exception("Generation %d failed unexpectedly", epoch)
            self.events.publish(GenerationFailed(epoch, request, repr(exc)))
            return

        if self._pending is not None and not self.apply_superseded:
            logger.info("Discarding result of epoch %d; epoch %d is pending", epoch, self.requested_epoch)
            self.events.publish(GenerationSuperseded(epoch, self.requested_epoch))
            return

        try:
            outcome = self.apply_result(image, request)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            logger.exception("Applying result of generation %d failed", epoch)
            self.events.publish(GenerationFailed(epoch, request, repr(exc)))
            return

        elapsed = time.monotonic() - start
        logger.info("Generation %d applied in %.1fs", epoch, elapsed)
        self.events.publish(GenerationCompleted(epoch, request, elapsed))


class AutoRefresher:
    """Submits a fresh configuration snapshot on a fixed interval."""

    def __init__(
        self,
        coordinator: GenerationCoordinator,
        request_provider: Callable[[], GenerationRequest],
        interval: float = 600.0,
    ):
        """
        Initialize auto refresh.

        Args:
            coordinator: Coordinator receiving the requests
            request_provider: Returns the current configuration as a request;
                called once per tick
            interval: Seconds between ticks
        """
        self.coordinator = coordinator
        self.request_provider = request_provider
        self.interval = interval
        self.ticks = 0
        self._stop = asyncio.Event()

    async def run(self) -> None:
        """Submit immediately, then every interval until stop() is called."""
        while not self._stop.is_set():
            self.ticks += 1
            try:
                request = self.request_provider()
            except (ValueError, OSError, yaml.YAMLError) as exc:
                logger.error("Skipping refresh, cannot read configuration: %s", exc)
            else:
                self.coordinator.submit(request)

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                interval = int(self.interval)
                interval_str = f"{interval} sec" if interval < 60 else f"{interval // 60} min"
                logger.info("Auto-refreshing wallpaper (interval: %s)", interval_str)

    def stop(self) -> None:
        self._stop.set()
