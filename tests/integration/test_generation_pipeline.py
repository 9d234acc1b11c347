"""End-to-end generation over a mock transport."""

import asyncio

import httpx
import numpy as np
import pytest

from hemisphere.events import EventBus
from hemisphere.models.events import LayerDegraded
from hemisphere.models.generation import GenerationRequest, LayerTag, MapStyle
from hemisphere.services.errors import CompositionError, SnapshotError
from hemisphere.services.generation_service import WallpaperPipeline

FEED = {
    "radar": {"past": [{"time": 1700000600, "path": "/v2/radar/1700000600"}]},
    "satellite": {"infrared": [{"time": 1700000600, "path": "/v2/satellite/ir1"}]},
}

GRAY = (40, 40, 40, 255)
RED = (255, 0, 0, 255)
WHITE = (255, 255, 255, 255)
BLUE = (0, 0, 255, 255)


@pytest.fixture
def routes(make_png):
    return {
        "weather-maps.json": httpx.Response(200, json=FEED),
        "/v2/radar/": make_png(RED),
        "/v2/satellite/": make_png(WHITE),
        "basemaps.cartocdn.com": make_png(GRAY),
        "arcgisonline.com": make_png(BLUE),
    }


def _generate(app_config, transport, request):
    """Run one generation; returns (image or exception, events, urls requested)."""
    events = []
    bus = EventBus()
    bus.subscribe(events.append)

    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            pipeline = WallpaperPipeline.from_config(app_config, client=client, events=bus, use_cache=False)
            try:
                return await pipeline.generate(request)
            except (CompositionError, SnapshotError) as exc:
                return exc
            finally:
                await pipeline.aclose()

    return asyncio.run(run()), events, transport.seen


class TestMosaic:
    def test_generates_canvas(self, app_config, mock_transport, routes, mosaic_request):
        image, events, seen = _generate(app_config, mock_transport(routes), mosaic_request)

        assert image.size == (160, 90)
        assert image.mode == "RGB"
        assert events == []
        r, g, b = image.getpixel((80, 45))
        assert r > 150
        assert g < 60

    def test_mosaic_tiles_at_floor_zoom(self, app_config, mock_transport, routes, continental_us):
        request = GenerationRequest(style=MapStyle.BLACKOUT, region=continental_us, target_size=(64, 36))
        _, _, seen = _generate(app_config, mock_transport(routes), request)

        base_urls = [u for u in seen if "cartocdn" in u]
        assert base_urls
        assert all("/dark_all/5/" in u for u in base_urls)

    def test_satellite_not_fetched_when_disabled(self, app_config, mock_transport, routes, mosaic_request):
        _, _, seen = _generate(app_config, mock_transport(routes), mosaic_request)
        assert not any("/v2/satellite/" in u for u in seen)
        assert any("/v2/radar/" in u for u in seen)

    def test_failed_radar_matches_radar_disabled(self, app_config, mock_transport, routes, mosaic_request):
        routes["/v2/radar/"] = httpx.Response(500)
        failed, events, _ = _generate(app_config, mock_transport(routes), mosaic_request)

        disabled = mosaic_request.model_copy(update={"radar_enabled": False})
        without, _, _ = _generate(app_config, mock_transport(routes), disabled)

        assert np.array_equal(np.array(failed), np.array(without))
        degraded = [e for e in events if isinstance(e, LayerDegraded)]
        assert len(degraded) == 1
        assert degraded[0].layer is LayerTag.RADAR
        assert degraded[0].fetched == 0
        assert degraded[0].requested > 0

    def test_no_base_tiles(self, app_config, mock_transport, routes, mosaic_request):
        routes["basemaps.cartocdn.com"] = httpx.Response(503)
        result, _, _ = _generate(app_config, mock_transport(routes), mosaic_request)
        assert isinstance(result, CompositionError)

    def test_feed_down_still_renders_base(self, app_config, mock_transport, routes, mosaic_request):
        routes["weather-maps.json"] = httpx.Response(500)
        image, events, seen = _generate(app_config, mock_transport(routes), mosaic_request)

        assert image.getpixel((80, 45)) == pytest.approx((40, 40, 40), abs=1)
        assert not any("tilecache" in u for u in seen)
        assert events == [LayerDegraded(LayerTag.RADAR, 0, 0, "no frame in weather feed")]


class TestSnapshotStyle:
    def test_snapshot_with_overlays(self, app_config, mock_transport, routes, satellite_request):
        request = satellite_request.model_copy(update={"satellite_enabled": True})
        image, events, seen = _generate(app_config, mock_transport(routes), request)

        assert image.size == (160, 90)
        assert events == []
        assert any("arcgisonline.com" in u and "World_Imagery" in u for u in seen)
        assert any("/v2/satellite/ir1/512/" in u for u in seen)
        assert not any("cartocdn" in u for u in seen)

        # blue base, white at 0.5, red at 0.7 on top
        r, g, b = image.getpixel((80, 45))
        assert r > 200
        assert b > g

    def test_snapshot_failure(self, app_config, mock_transport, routes, satellite_request):
        routes["arcgisonline.com"] = httpx.Response(404)
        result, _, _ = _generate(app_config, mock_transport(routes), satellite_request)
        assert isinstance(result, SnapshotError)

    def test_dark_style_template(self, app_config, mock_transport, routes, satellite_request):
        request = satellite_request.model_copy(update={"style": MapStyle.DARK, "radar_enabled": False})
        image, _, seen = _generate(app_config, mock_transport(routes), request)

        assert image.getpixel((80, 45)) == pytest.approx((0, 0, 255), abs=1)
        assert any("World_Dark_Gray_Base" in u for u in seen)
        assert not any("tilecache" in u for u in seen)


class TestRequestValidation:
    def test_no_target_size(self, app_config, mock_transport, routes, small_region):
        request = GenerationRequest(style=MapStyle.BLACKOUT, region=small_region)
        result, _, seen = _generate(app_config, mock_transport(routes), request)

        assert isinstance(result, CompositionError)
        assert seen == []

    def test_retina_scale(self, app_config, mock_transport, routes, mosaic_request):
        request = mosaic_request.model_copy(update={"scale_factor": 2.0})
        image, _, _ = _generate(app_config, mock_transport(routes), request)
        assert image.size == (320, 180)
