"""Tests for application configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from hemisphere.config import AppConfig
from hemisphere.models.generation import MapStyle


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "HEMISPHERE_OUTPUT_DIR",
        "HEMISPHERE_CACHE_DIR",
        "HEMISPHERE_FEED_URL",
        "HEMISPHERE_REFRESH_INTERVAL",
        "HEMISPHERE_MAX_CONCURRENCY",
        "HEMISPHERE_REQUEST_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_network_defaults(self):
        config = AppConfig()
        assert config.feed_url == "https://api.rainviewer.com/public/weather-maps.json"
        assert config.request_timeout == 15
        assert config.max_concurrency == 16

    def test_display_size(self):
        assert AppConfig().display_size == (2560, 1440)

    def test_refresh_interval(self):
        assert AppConfig().refresh_interval == 600

    def test_every_snapshot_style_has_template(self):
        templates = AppConfig().snapshot_templates
        for style in MapStyle:
            if not style.is_mosaic:
                assert "{z}" in templates[style]

    def test_validation(self):
        with pytest.raises(ValidationError):
            AppConfig(max_concurrency=0)


class TestEnvironment:
    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HEMISPHERE_OUTPUT_DIR", str(tmp_path))
        monkeypatch.setenv("HEMISPHERE_REFRESH_INTERVAL", "120")
        monkeypatch.setenv("HEMISPHERE_MAX_CONCURRENCY", "4")

        config = AppConfig.load()
        assert config.output_dir == tmp_path
        assert config.refresh_interval == 120
        assert config.max_concurrency == 4

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("HEMISPHERE_MAX_CONCURRENCY", "lots")
        with pytest.raises(ValidationError):
            AppConfig.load()


class TestYaml:
    def test_values_override_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "default_style: blackout\n"
            "default_region: texas\n"
            "satellite_enabled: true\n"
            "display_width: 1920\n"
            "display_height: 1080\n"
        )
        config = AppConfig.from_yaml(path)

        assert config.default_style == MapStyle.BLACKOUT
        assert config.default_region == "texas"
        assert config.satellite_enabled is True
        assert config.display_size == (1920, 1080)
        assert config.radar_enabled is True

    def test_yaml_wins_over_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HEMISPHERE_REFRESH_INTERVAL", "120")
        path = tmp_path / "config.yaml"
        path.write_text("refresh_interval: 300\n")
        assert AppConfig.from_yaml(path).refresh_interval == 300

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert AppConfig.from_yaml(path).max_concurrency == 16

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- one\n- two\n")
        with pytest.raises(ValueError, match="mapping"):
            AppConfig.from_yaml(path)

    def test_unknown_style(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("default_style: sepia\n")
        with pytest.raises(ValidationError):
            AppConfig.from_yaml(path)


def test_ensure_directories(tmp_path):
    config = AppConfig(cache_dir=tmp_path / "c", output_dir=tmp_path / "o")
    config.ensure_directories()
    assert Path(tmp_path / "c").is_dir()
    assert Path(tmp_path / "o").is_dir()
