"""Image processing utilities."""

from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image


def decode_image(data: bytes) -> Image.Image:
    """
    Fully decode encoded image bytes into an RGBA image.

    Raises:
        OSError: If the data is not a complete, decodable image
    """
    try:
        with Image.open(BytesIO(data)) as image:
            # Force the whole payload through the decoder; truncated data fails here
            image.load()
            return image.convert("RGBA")
    except (EOFError, SyntaxError) as exc:
        # Some plugins report damaged streams as parser errors
        raise OSError(f"Cannot decode image: {exc}") from exc


def save_image(image: Image.Image, path: Union[str, Path], quality: int = 95) -> None:
    """Save an image to file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.suffix.lower() in (".jpg", ".jpeg"):
        # Convert to RGB for JPEG
        if image.mode == "RGBA":
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            image = background
        image.save(path, quality=quality)
    else:
        image.save(path)


def resize_image(
    image: Image.Image,
    size: tuple[int, int],
    resample: int = Image.Resampling.LANCZOS,
    box: Optional[tuple[float, float, float, float]] = None,
) -> Image.Image:
    """Resize image (or the source region given by box) to specified size."""
    if image.size == size and box is None:
        return image
    return image.resize(size, resample=resample, box=box)


def apply_opacity(image: Image.Image, opacity: float) -> Image.Image:
    """Return an RGBA copy whose alpha channel is scaled by opacity."""
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    if opacity >= 1.0:
        return image

    arr = np.array(image)
    alpha = arr[:, :, 3].astype(np.float32) * max(0.0, opacity)
    arr[:, :, 3] = np.rint(alpha).astype(np.uint8)
    return Image.fromarray(arr, "RGBA")


def draw_clipped(
    canvas: Image.Image,
    image: Image.Image,
    box: tuple[int, int, int, int],
    opacity: float = 1.0,
) -> bool:
    """
    Draw image stretched into box on canvas with source-over blending.

    The box may extend past the canvas; only the visible part is drawn.

    Args:
        canvas: RGBA canvas, modified in place
        image: Image to draw
        box: Target (left, top, right, bottom) in canvas pixels
        opacity: Extra alpha multiplier for the drawn image

    Returns:
        True if any pixel of the box was on the canvas
    """
    left, top, right, bottom = box
    width, height = right - left, bottom - top
    if width <= 0 or height <= 0:
        return False

    vis_left = max(0, left)
    vis_top = max(0, top)
    vis_right = min(canvas.width, right)
    vis_bottom = min(canvas.height, bottom)
    if vis_left >= vis_right or vis_top >= vis_bottom:
        return False

    # Resample only the source window that lands on the canvas, so the work is
    # bounded by the canvas size however large the projected box is
    scale_x = image.width / width
    scale_y = image.height / height
    source_box = (
        (vis_left - left) * scale_x,
        (vis_top - top) * scale_y,
        (vis_right - left) * scale_x,
        (vis_bottom - top) * scale_y,
    )
    visible = resize_image(
        image.convert("RGBA"),
        (vis_right - vis_left, vis_bottom - vis_top),
        box=source_box,
    )
    canvas.alpha_composite(apply_opacity(visible, opacity), dest=(vis_left, vis_top))
    return True
