"""Shared test fixtures."""

from io import BytesIO

import httpx
import pytest
from PIL import Image

from hemisphere.config import AppConfig
from hemisphere.models.generation import GenerationRequest, MapStyle
from hemisphere.models.region import Region, get_region


def png_bytes(color=(255, 0, 0, 255), size=(8, 8)) -> bytes:
    """Encode a solid-color PNG."""
    buffer = BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_transport(routes, default_status=404):
    """MockTransport answering from a {url_substring: response} mapping.

    Values may be an httpx.Response (copied for each request), bytes (PNG
    body with status 200), or a
    callable taking the request and returning a Response or raising.
    """
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        seen.append(url)
        for key, value in routes.items():
            if key in url:
                if callable(value):
                    return value(request)
                if isinstance(value, bytes):
                    return httpx.Response(200, content=value)
                # fresh copy per request
                return httpx.Response(value.status_code, content=value.content, headers=value.headers)
        return httpx.Response(default_status)

    transport = httpx.MockTransport(handler)
    transport.seen = seen
    return transport


@pytest.fixture
def continental_us():
    """The catalog's widest region."""
    return get_region("Continental US")


@pytest.fixture
def alabama():
    """The catalog's smallest region."""
    return get_region("alabama")


@pytest.fixture
def small_region():
    """Tiny region used to keep pipelines fast."""
    return Region(name="Test Area", lat=33.0, lon=-84.0, span=2)


@pytest.fixture
def mosaic_request(small_region):
    return GenerationRequest(
        style=MapStyle.BLACKOUT,
        region=small_region,
        target_size=(160, 90),
    )


@pytest.fixture
def satellite_request(small_region):
    return GenerationRequest(
        style=MapStyle.SATELLITE,
        region=small_region,
        target_size=(160, 90),
    )


@pytest.fixture
def app_config(tmp_path):
    """Config with directories inside tmp_path."""
    return AppConfig(cache_dir=tmp_path / "cache", output_dir=tmp_path / "out")


@pytest.fixture
def sample_feed():
    """Feed document with two radar frames and no satellite data."""
    return {
        "version": "2.0",
        "generated": 1700000700,
        "host": "https://tilecache.rainviewer.com",
        "radar": {
            "past": [
                {"time": 1700000000, "path": "/v2/radar/1700000000"},
                {"time": 1700000600, "path": "/v2/radar/1700000600"},
            ],
            "nowcast": [],
        },
        "satellite": None,
    }


@pytest.fixture
def make_png():
    return png_bytes


@pytest.fixture
def mock_transport():
    return make_transport
