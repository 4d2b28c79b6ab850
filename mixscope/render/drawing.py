"""Small Pillow helpers for labels and overlays."""
from __future__ import annotations

from functools import lru_cache

from PIL import Image, ImageDraw, ImageFont

BACKGROUND = (13, 13, 13, 255)
CHART_BACKGROUND = (26, 26, 26, 255)
WHITE = (255, 255, 255, 255)
GRID = (255, 255, 255, 51)


@lru_cache(maxsize=16)
def font(size: int) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


def text_size(draw: ImageDraw.ImageDraw, text: str, size: int) -> tuple[int, int]:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font(size))
    return right - left, bottom - top


def draw_text(
    draw: ImageDraw.ImageDraw,
    xy: tuple[float, float],
    text: str,
    size: int = 14,
    anchor: str = "la",
    fill=WHITE,
) -> None:
    draw.text(xy, text, font=font(size), fill=fill, anchor=anchor)


def draw_vertical_text(
    image: Image.Image,
    centre: tuple[float, float],
    text: str,
    size: int = 16,
    fill=WHITE,
) -> None:
    """Draw text rotated 90 degrees counter-clockwise, centred on `centre`."""
    probe = ImageDraw.Draw(image)
    w, h = text_size(probe, text, size)
    pad = 4
    label = Image.new("RGBA", (w + 2 * pad, h + 2 * pad), (0, 0, 0, 0))
    ImageDraw.Draw(label).text(
        (label.width / 2, label.height / 2), text, font=font(size), fill=fill, anchor="mm"
    )
    label = label.rotate(90, expand=True)
    x = int(round(centre[0] - label.width / 2))
    y = int(round(centre[1] - label.height / 2))
    image.alpha_composite(label, (max(0, x), max(0, y)))


def overlay_lines(
    image: Image.Image,
    lines: list[tuple[float, float, float, float]],
    fill=GRID,
    width: int = 1,
) -> None:
    """Alpha-blend straight lines onto the image."""
    if not lines:
        return
    layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    for x0, y0, x1, y1 in lines:
        draw.line([(x0, y0), (x1, y1)], fill=fill, width=width)
    image.alpha_composite(layer)
