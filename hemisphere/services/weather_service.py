"""Weather frame feed client (RainViewer weather-maps.json)."""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from ..models.generation import WeatherFrameSet

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL = "https://api.rainviewer.com/public/weather-maps.json"


class FeedFrame(BaseModel):
    """One timestamped frame in the feed."""

    time: int
    path: str


class RadarHistory(BaseModel):
    past: list[FeedFrame]


class SatelliteHistory(BaseModel):
    infrared: Optional[list[FeedFrame]] = None


class WeatherFeed(BaseModel):
    """Subset of the feed document this client reads; other keys are ignored."""

    radar: RadarHistory
    satellite: Optional[SatelliteHistory] = Field(default=None)


def parse_weather_feed(payload: Any) -> WeatherFrameSet:
    """
    Select the latest radar and infrared frame paths from a decoded feed.

    Args:
        payload: Decoded JSON document

    Returns:
        WeatherFrameSet with whichever paths the feed provides

    Raises:
        pydantic.ValidationError: If the document does not have a radar history
    """
    feed = WeatherFeed.model_validate(payload)

    radar_path = None
    if feed.radar.past:
        radar_path = feed.radar.past[-1].path
        logger.info("Radar frames available: %d", len(feed.radar.past))

    satellite_path = None
    if feed.satellite is None:
        logger.info("No satellite data in feed")
    elif not feed.satellite.infrared:
        logger.info("No infrared frames in satellite data")
    else:
        satellite_path = feed.satellite.infrared[-1].path
        logger.info("Infrared frames available: %d", len(feed.satellite.infrared))

    return WeatherFrameSet(radar_path=radar_path, satellite_path=satellite_path)


class WeatherFeedClient:
    """Fetches the weather feed; never raises for network or data problems."""

    def __init__(
        self,
        feed_url: str = DEFAULT_FEED_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize the feed client.

        Args:
            feed_url: URL of the weather-maps JSON document
            client: Shared async client; one is created per fetch if omitted
            timeout: Request timeout in seconds
            user_agent: Optional User-Agent header
        """
        self.feed_url = feed_url
        self.timeout = timeout
        self._client = client
        self._headers = {"User-Agent": user_agent} if user_agent else {}

    async def fetch(self) -> WeatherFrameSet:
        """Fetch and parse the feed, returning an empty frame set on any failure."""
        try:
            response = await self._get()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Failed to fetch weather feed: %s", exc)
            return WeatherFrameSet()

        if response.status_code != 200:
            logger.warning("Weather feed returned HTTP %d", response.status_code)
            return WeatherFrameSet()

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Weather feed is not valid JSON: %s", exc)
            logger.debug("Raw feed response (first 500 chars): %s", response.text[:500])
            return WeatherFrameSet()

        try:
            frames = parse_weather_feed(payload)
        except ValidationError as exc:
            logger.warning("Unexpected weather feed shape: %s", exc.errors()[:3])
            logger.debug("Raw feed response (first 500 chars): %s", response.text[:500])
            return WeatherFrameSet()

        if frames.radar_path:
            logger.info("Latest radar path: %s", frames.radar_path)
        if frames.satellite_path:
            logger.info("Latest satellite path: %s", frames.satellite_path)
        return frames

    async def _get(self) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(self.feed_url, headers=self._headers, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout, headers=self._headers) as client:
            return await client.get(self.feed_url)
