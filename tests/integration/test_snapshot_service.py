"""Integration tests for base snapshot rendering and its tile cache."""

import asyncio
from unittest.mock import patch

import httpx
import pytest
from PIL import Image

from hemisphere.config import AppConfig
from hemisphere.models.generation import GenerationRequest, MapStyle
from hemisphere.services.errors import SnapshotError
from hemisphere.services.snapshot_service import SnapshotService
from hemisphere.services.tile_fetch_service import TileFetchPool, base_source
from hemisphere.utils.geo_utils import tile_set


def _render(transport, request, cache_dir=None):
    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            service = SnapshotService(TileFetchPool(client=client), cache_dir=cache_dir)
            return await service.render(request, base_source(AppConfig(), request.style))

    return asyncio.run(run())


class TestCalculateZoom:
    def test_matches_canvas_resolution(self, continental_us):
        service = SnapshotService(pool=None)
        request = GenerationRequest(region=continental_us, target_size=(2560, 1440))
        # 62.2 degrees over 2560 px: log2(57.9) rounds down to 5
        assert service.calculate_zoom(request) == 5

    def test_higher_scale_raises_zoom(self, continental_us):
        service = SnapshotService(pool=None)
        request = GenerationRequest(region=continental_us, target_size=(2560, 1440), scale_factor=2)
        assert service.calculate_zoom(request) == 6

    def test_floor(self, continental_us):
        service = SnapshotService(pool=None)
        request = GenerationRequest(region=continental_us, target_size=(64, 36))
        assert service.calculate_zoom(request) == 4

    def test_ceiling(self, small_region):
        service = SnapshotService(pool=None)
        request = GenerationRequest(region=small_region, target_size=(20000, 20000))
        assert service.calculate_zoom(request) == SnapshotService.MAX_ZOOM


class TestRender:
    def test_snapshot_size(self, make_png, mock_transport, satellite_request):
        transport = mock_transport({"arcgisonline.com": make_png((0, 0, 255, 255))})
        snapshot = _render(transport, satellite_request)
        assert snapshot.size == satellite_request.canvas_size
        assert snapshot.getpixel((80, 45)) == pytest.approx((0, 0, 255, 255), abs=1)

    def test_no_tiles(self, mock_transport, satellite_request):
        with pytest.raises(SnapshotError):
            _render(mock_transport({}), satellite_request)

    def test_no_target_size(self, mock_transport, small_region):
        request = GenerationRequest(style=MapStyle.LIGHT, region=small_region)
        with pytest.raises(SnapshotError, match="target size"):
            _render(mock_transport({}), request)

    def test_cache_reused(self, tmp_path, make_png, mock_transport, satellite_request):
        first = mock_transport({"arcgisonline.com": make_png((0, 0, 255, 255))})
        _render(first, satellite_request, cache_dir=tmp_path)
        cached = list((tmp_path / "satellite").glob("*.png"))
        assert len(cached) == len(first.seen)

        # Server gone; every tile comes from disk
        second = mock_transport({})
        snapshot = _render(second, satellite_request, cache_dir=tmp_path)
        assert second.seen == []
        assert snapshot.getpixel((80, 45)) == pytest.approx((0, 0, 255, 255), abs=1)

    def test_cache_per_style(self, tmp_path, make_png, mock_transport, satellite_request):
        transport = mock_transport({"arcgisonline.com": make_png()})
        _render(transport, satellite_request, cache_dir=tmp_path)

        dark = satellite_request.model_copy(update={"style": MapStyle.DARK})
        second = mock_transport({"arcgisonline.com": make_png()})
        _render(second, dark, cache_dir=tmp_path)
        assert second.seen
        assert (tmp_path / "dark").is_dir()

    def test_corrupt_cache_entry_refetched(self, tmp_path, make_png, mock_transport, satellite_request):
        first = mock_transport({"arcgisonline.com": make_png()})
        _render(first, satellite_request, cache_dir=tmp_path)
        victim = sorted((tmp_path / "satellite").glob("*.png"))[0]
        victim.write_bytes(b"garbage")

        second = mock_transport({"arcgisonline.com": make_png()})
        _render(second, satellite_request, cache_dir=tmp_path)
        assert len(second.seen) == 1

    def test_unwritable_cache_still_renders(self, tmp_path, make_png, mock_transport, satellite_request):
        # A file where the style's cache directory should be
        (tmp_path / "satellite").write_text("not a directory")

        transport = mock_transport({"arcgisonline.com": make_png((0, 0, 255, 255))})
        snapshot = _render(transport, satellite_request, cache_dir=tmp_path)

        assert snapshot.size == satellite_request.canvas_size
        assert snapshot.getpixel((80, 45)) == pytest.approx((0, 0, 255, 255), abs=1)
        assert (tmp_path / "satellite").is_file()

    def test_oversized_cache_entry_ignored(self, tmp_path, make_png, mock_transport, satellite_request):
        _render(mock_transport({"arcgisonline.com": make_png()}), satellite_request, cache_dir=tmp_path)

        service = SnapshotService(pool=None, cache_dir=tmp_path)
        zoom = service.calculate_zoom(satellite_request)
        tiles = tile_set(satellite_request.region, satellite_request.aspect_ratio, minimum_zoom=zoom)
        assert len(service._load_cached(satellite_request, tiles)) == len(tiles)

        # 8x8 cached tiles now exceed the decompression bomb limit
        with patch.object(Image, "MAX_IMAGE_PIXELS", 10):
            assert service._load_cached(satellite_request, tiles) == []
