"""PNG output and output-path resolution shared by the renderers."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
from PIL import Image

from mixscope.config.loader import workdir
from mixscope.errors import InvalidInputError

logger = logging.getLogger(__name__)


def default_output_dir() -> Path:
    return workdir() / "output" / "visualizations"


def timestamped_filename(prefix: str, extension: str = "png") -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return f"{prefix}-{stamp}.{extension}"


def resolve_output_path(filename: str, output_path: str | Path | None = None) -> Path:
    """
    Where to write `filename`.

    No output_path: the default visualization directory. A path ending in a
    separator, or without a suffix, is a directory to place `filename` in;
    anything else is the file path itself.
    """
    if output_path is None or str(output_path) == "":
        return default_output_dir() / filename
    text = str(output_path)
    p = Path(text).expanduser()
    if text.endswith(("/", "\\")) or not p.suffix:
        return (p / filename).resolve()
    return p.resolve()


def write_png(path: str | Path, rgba: np.ndarray, width: int, height: int) -> Path:
    """Write a (height, width, 4) uint8 array as an 8-bit RGBA PNG."""
    arr = np.asarray(rgba)
    if arr.shape != (height, width, 4):
        raise InvalidInputError(
            f"RGBA buffer shape {arr.shape} does not match {height}x{width}x4."
        )
    path = Path(path)
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("created output directory %s", path.parent)
    Image.fromarray(arr.astype(np.uint8)).save(path, format="PNG")
    return path


def save_image(image: Image.Image, path: Path) -> Path:
    """Save a Pillow image as RGBA PNG."""
    rgba = np.asarray(image.convert("RGBA"))
    out = write_png(path, rgba, image.width, image.height)
    logger.info("saved %s", out)
    return out
