"""Command-line interface for the wallpaper generator."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
import yaml
from PIL import Image
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import AppConfig, get_config
from .events import EventBus
from .models.events import (
    GenerationCompleted,
    GenerationEvent,
    GenerationFailed,
    GenerationStarted,
    GenerationSuperseded,
    LayerDegraded,
    RequestCoalesced,
)
from .models.generation import GenerationRequest, MapStyle
from .models.region import REGION_CATALOG, get_region
from .services.generation_service import AutoRefresher, GenerationCoordinator, WallpaperPipeline
from .services.weather_service import WeatherFeedClient
from .utils.geo_utils import tile_set
from .utils.image_utils import save_image

console = Console()

WALLPAPER_PREFIX = "wallpaper"


def timestamped_filename(base_name: str, extension: str = "png") -> str:
    """Generate a filename with timestamp to avoid overwrites.

    Args:
        base_name: Base name for the file (e.g., 'wallpaper')
        extension: File extension without dot (default: 'png')

    Returns:
        Filename like 'wallpaper_20240201_143052.png'
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{base_name}_{timestamp}.{extension}"


def save_wallpaper(image: Image.Image, output_dir: Path) -> Path:
    """Save image to output_dir, then remove earlier wallpapers there."""
    path = output_dir / timestamped_filename(WALLPAPER_PREFIX)
    save_image(image, path)

    for old in output_dir.glob(f"{WALLPAPER_PREFIX}_*.png"):
        if old == path:
            continue
        try:
            old.unlink()
        except OSError as exc:
            logging.getLogger(__name__).warning("Could not remove old wallpaper %s: %s", old, exc)
    return path


def parse_size(ctx, param, value: Optional[str]) -> Optional[tuple[int, int]]:
    """Click callback turning 'WIDTHxHEIGHT' into a tuple."""
    if value is None:
        return None
    try:
        width, height = (int(part) for part in value.lower().split("x"))
    except ValueError:
        raise click.BadParameter(f"expected WIDTHxHEIGHT, got '{value}'")
    if width <= 0 or height <= 0:
        raise click.BadParameter(f"size must be positive, got '{value}'")
    return (width, height)


def _setup_logging(verbose: bool, log_file: Optional[str]) -> None:
    handlers: list[logging.Handler] = [RichHandler(console=console, show_path=False)]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s"))
        handlers.append(file_handler)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_config(config_path: Optional[str]) -> AppConfig:
    if config_path:
        return AppConfig.from_yaml(config_path)
    return get_config()


def _build_request(
    config: AppConfig,
    style: Optional[str],
    region: Optional[str],
    size: Optional[tuple[int, int]],
    scale: Optional[float],
    radar: Optional[bool],
    satellite: Optional[bool],
) -> GenerationRequest:
    return GenerationRequest(
        style=MapStyle(style) if style else config.default_style,
        region=get_region(region if region is not None else config.default_region),
        target_size=size or config.display_size,
        scale_factor=scale if scale is not None else config.scale_factor,
        radar_enabled=config.radar_enabled if radar is None else radar,
        satellite_enabled=config.satellite_enabled if satellite is None else satellite,
    )


def _print_event(event: GenerationEvent) -> None:
    if isinstance(event, GenerationStarted):
        console.print(f"[bold]Generating[/bold] epoch {event.epoch}: {escape(event.request.describe())}")
    elif isinstance(event, GenerationCompleted):
        console.print(f"[green]Done[/green] epoch {event.epoch} in {event.elapsed_seconds:.1f}s")
    elif isinstance(event, GenerationFailed):
        console.print(f"[red]Failed[/red] epoch {event.epoch}: {escape(event.error)}")
    elif isinstance(event, GenerationSuperseded):
        console.print(f"[dim]Discarded epoch {event.epoch}, epoch {event.latest_epoch} is pending[/dim]")
    elif isinstance(event, RequestCoalesced):
        console.print(f"[dim]Queued epoch {event.epoch}[/dim]")
    elif isinstance(event, LayerDegraded):
        reason = f" ({event.reason})" if event.reason else ""
        console.print(
            f"[yellow]Layer {event.layer.value}:[/yellow] {event.fetched}/{event.requested} tiles{reason}"
        )


def _make_coordinator(config: AppConfig, output_dir: Path, saved: list[Path]):
    events = EventBus()
    events.subscribe(_print_event)
    pipeline = WallpaperPipeline.from_config(config, events=events)

    def apply(image: Image.Image, request: GenerationRequest) -> None:
        path = save_wallpaper(image, output_dir)
        saved.append(path)
        console.print(f"[green]Saved:[/green] {escape(str(path))}")

    coordinator = GenerationCoordinator(
        pipeline,
        apply,
        events=events,
        apply_superseded=config.apply_superseded_results,
    )
    return pipeline, coordinator


style_option = click.option(
    "--style", "-s", type=click.Choice([s.value for s in MapStyle]), help="Map style"
)
region_option = click.option("--region", "-r", help="Region name, slug or catalog index")
size_option = click.option("--size", callback=parse_size, help="Display size as WIDTHxHEIGHT")
scale_option = click.option("--scale", type=float, help="Device scale factor (2 for retina)")
radar_option = click.option("--radar/--no-radar", default=None, help="Draw the radar overlay")
satellite_option = click.option(
    "--satellite/--no-satellite", default=None, help="Draw the infrared satellite overlay"
)
output_option = click.option("--output", "-o", type=click.Path(), help="Output directory")
config_option = click.option(
    "--config", "config_path", type=click.Path(exists=True), help="YAML configuration file"
)


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--log-file", type=click.Path(), help="Also write logs to this file")
def main(verbose: bool, log_file: Optional[str]):
    """Hemisphere - weather radar wallpapers."""
    _setup_logging(verbose, log_file)


@main.command()
def regions():
    """List the built-in regions."""
    table = Table(title="Regions")
    table.add_column("#", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Slug")
    table.add_column("Center", style="green")
    table.add_column("Span", style="green")

    for index, region in enumerate(REGION_CATALOG):
        table.add_row(
            str(index),
            region.name,
            region.slug,
            f"{region.lat:.1f}, {region.lon:.1f}",
            f"{region.span:g}°",
        )

    console.print(table)


@main.command()
@click.argument("region")
@size_option
@style_option
def tiles(region: str, size: Optional[tuple[int, int]], style: Optional[str]):
    """Show the tile grid needed for a region."""
    try:
        selected = get_region(region)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    width, height = size or get_config().display_size
    map_style = MapStyle(style) if style else MapStyle.SATELLITE
    grid = tile_set(selected, width / height, map_style.minimum_zoom)
    xs = sorted({t.x for t in grid})
    ys = sorted({t.y for t in grid})

    table = Table(title=f"Tiles: {selected.name}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Display", f"{width} x {height} px")
    table.add_row("Style", map_style.value)
    table.add_row("Zoom", str(grid[0].zoom))
    table.add_row("X range", f"{xs[0]}-{xs[-1]} ({len(xs)} tiles)")
    table.add_row("Y range", f"{ys[0]}-{ys[-1]} ({len(ys)} tiles)")
    table.add_row("Tile Grid", f"{len(xs)} x {len(ys)} = {len(grid)} tiles")
    console.print(table)


@main.command()
@config_option
def feed(config_path: Optional[str]):
    """Fetch the weather feed and show the latest frames."""
    config = _load_config(config_path)
    client = WeatherFeedClient(
        feed_url=config.feed_url,
        timeout=config.request_timeout,
        user_agent=config.user_agent,
    )
    frames = asyncio.run(client.fetch())

    if frames.is_empty:
        console.print("[yellow]No weather frames available[/yellow]")
        return
    console.print(f"[bold]Radar:[/bold] {frames.radar_path or '-'}")
    console.print(f"[bold]Satellite:[/bold] {frames.satellite_path or '-'}")


@main.command()
@style_option
@region_option
@size_option
@scale_option
@radar_option
@satellite_option
@output_option
@config_option
def generate(
    style: Optional[str],
    region: Optional[str],
    size: Optional[tuple[int, int]],
    scale: Optional[float],
    radar: Optional[bool],
    satellite: Optional[bool],
    output: Optional[str],
    config_path: Optional[str],
):
    """Generate one wallpaper and save it to the output directory."""
    try:
        config = _load_config(config_path)
        request = _build_request(config, style, region, size, scale, radar, satellite)
    except (ValueError, OSError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    output_dir = Path(output) if output else config.output_dir
    saved: list[Path] = []

    async def run():
        pipeline, coordinator = _make_coordinator(config, output_dir, saved)
        try:
            coordinator.submit(request)
            await coordinator.wait_idle()
        finally:
            await pipeline.aclose()

    asyncio.run(run())

    if not saved:
        console.print("[red]Error:[/red] Wallpaper generation failed")
        raise SystemExit(1)


@main.command()
@style_option
@region_option
@size_option
@scale_option
@radar_option
@satellite_option
@output_option
@config_option
@click.option(
    "--interval",
    "-i",
    type=click.FloatRange(min=0, min_open=True),
    help="Seconds between refreshes",
)
def watch(
    style: Optional[str],
    region: Optional[str],
    size: Optional[tuple[int, int]],
    scale: Optional[float],
    radar: Optional[bool],
    satellite: Optional[bool],
    output: Optional[str],
    config_path: Optional[str],
    interval: Optional[float],
):
    """Regenerate the wallpaper periodically until interrupted.

    With --config, the file is re-read on every refresh so edits apply to
    the next generation.
    """
    try:
        config = _load_config(config_path)
        _build_request(config, style, region, size, scale, radar, satellite)
    except (ValueError, OSError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    output_dir = Path(output) if output else config.output_dir
    refresh = interval or config.refresh_interval

    def current_request() -> GenerationRequest:
        current = _load_config(config_path) if config_path else config
        return _build_request(current, style, region, size, scale, radar, satellite)

    async def run():
        pipeline, coordinator = _make_coordinator(config, output_dir, [])
        refresher = AutoRefresher(coordinator, current_request, interval=refresh)
        try:
            await refresher.run()
        finally:
            refresher.stop()
            await coordinator.wait_idle()
            await pipeline.aclose()

    console.print(f"[bold]Refreshing every[/bold] {refresh:g}s (Ctrl+C to stop)")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("[dim]Stopped[/dim]")


if __name__ == "__main__":
    main()
