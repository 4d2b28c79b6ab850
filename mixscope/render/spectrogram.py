"""High-resolution spectrogram rendering to PNG."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw

from mixscope.errors import InvalidInputError, ParameterError, check_choice, check_range
from mixscope.render.colormaps import COLORMAP_NAMES, apply_colormap
from mixscope.render.drawing import (
    BACKGROUND,
    WHITE,
    draw_text,
    draw_vertical_text,
    overlay_lines,
)
from mixscope.render.output import resolve_output_path, save_image, timestamped_filename
from mixscope.types import RenderResult, SpectrogramData

logger = logging.getLogger(__name__)

FREQUENCY_SCALES = ("logarithmic", "linear")

# ISO 266 1/3-octave centre frequencies
ISO_THIRD_OCTAVE_HZ = (
    20, 25, 31.5, 40, 50, 63, 80, 100, 125, 160, 200, 250, 315, 400, 500, 630,
    800, 1000, 1250, 1600, 2000, 2500, 3150, 4000, 5000, 6300, 8000, 10000,
    12500, 16000, 20000,
)

TIME_GRID_STEPS = (
    (1.0, 0.1),
    (5.0, 0.5),
    (10.0, 1.0),
    (30.0, 2.0),
    (60.0, 5.0),
    (300.0, 30.0),
)
COLORBAR_TICKS = 5


@dataclass(frozen=True)
class SpectrogramRenderOptions:
    width: int = 1920
    height: int = 1080
    colormap: str = "viridis"
    frequency_scale: str = "logarithmic"
    min_db: float = -90.0
    max_db: float = 0.0
    min_frequency_hz: float = 20.0
    max_frequency_hz: float | None = None
    show_frequency_labels: bool = True
    show_time_labels: bool = True
    show_frequency_grid: bool = True
    show_time_grid: bool = True
    show_colorbar: bool = True
    show_title: bool = True
    title: str = "Spectrogram"
    output_path: str | None = None
    filename: str | None = None


def log_position_to_frequency(position, min_hz: float, max_hz: float):
    lo, hi = math.log10(min_hz), math.log10(max_hz)
    return 10.0 ** (lo + np.asarray(position, dtype=np.float64) * (hi - lo))


def frequency_to_position(freq: float, min_hz: float, max_hz: float, scale: str) -> float:
    """Vertical position in [0, 1] (0 = bottom) of a frequency."""
    if scale == "linear":
        return (freq - min_hz) / (max_hz - min_hz)
    if freq <= min_hz:
        return 0.0
    if freq >= max_hz:
        return 1.0
    lo, hi = math.log10(min_hz), math.log10(max_hz)
    return (math.log10(freq) - lo) / (hi - lo)


def frequency_grid(min_hz: float, max_hz: float) -> list[float]:
    return [f for f in ISO_THIRD_OCTAVE_HZ if min_hz <= f <= max_hz]


def format_frequency(hz: float) -> str:
    """'1k', '2.5k' or plain Hz below 1 kHz."""
    if hz >= 1000:
        khz = hz / 1000.0
        return f"{int(khz)}k" if khz == int(khz) else f"{khz:.1f}k"
    return str(int(round(hz)))


def time_grid_interval(duration_seconds: float) -> float:
    for limit, step in TIME_GRID_STEPS:
        if duration_seconds <= limit:
            return step
    return 60.0


def time_ticks(duration_seconds: float) -> list[float]:
    if duration_seconds <= 0:
        return []
    step = time_grid_interval(duration_seconds)
    count = int(math.floor(duration_seconds / step + 1e-9))
    return [k * step for k in range(count + 1)]


def validate_options(options: SpectrogramRenderOptions, sample_rate: float) -> tuple[float, float]:
    """Check the options; return the effective (min_hz, max_hz)."""
    check_range("width", options.width, 400, 7680)
    check_range("height", options.height, 300, 4320)
    check_range("min_db", options.min_db, -120, 0)
    check_range("max_db", options.max_db, -60, 20)
    if options.min_db >= options.max_db:
        raise ParameterError(
            f"min_db must be less than max_db (got {options.min_db} >= {options.max_db})."
        )
    check_choice("colormap", options.colormap, COLORMAP_NAMES)
    check_choice("frequency_scale", options.frequency_scale, FREQUENCY_SCALES)
    nyquist = sample_rate / 2.0
    fmin = float(options.min_frequency_hz)
    fmax = float(options.max_frequency_hz) if options.max_frequency_hz is not None else nyquist
    if not (0 < fmin < fmax <= nyquist):
        raise ParameterError(
            f"frequency range must satisfy 0 < min < max <= {nyquist:g} Hz "
            f"(got {fmin:g}-{fmax:g})."
        )
    return fmin, fmax


def rasterize(
    spec: SpectrogramData,
    plot_width: int,
    plot_height: int,
    min_hz: float,
    max_hz: float,
    scale: str,
    min_db: float,
    max_db: float,
) -> np.ndarray:
    """
    Normalized intensities of shape (plot_height, plot_width); row 0 is the
    highest frequency.

    Each pixel bilinearly interpolates the four surrounding (frame, bin)
    magnitudes; neighbours beyond the last bin contribute 0.
    """
    mags = np.asarray(spec.magnitudes, dtype=np.float64)
    num_frames, num_bins = mags.shape

    position = 1.0 - np.arange(plot_height, dtype=np.float64) / plot_height
    if scale == "logarithmic":
        freqs = log_position_to_frequency(position, min_hz, max_hz)
    else:
        freqs = min_hz + position * (max_hz - min_hz)
    bins = freqs * spec.fft_size / spec.sample_rate
    b0 = np.floor(bins).astype(np.int64)
    b1 = np.minimum(b0 + 1, num_bins - 1)
    bf = bins - b0

    frames = np.arange(plot_width, dtype=np.float64) / plot_width * (num_frames - 1)
    f0 = np.floor(frames).astype(np.int64)
    f1 = np.minimum(f0 + 1, num_frames - 1)
    ff = frames - f0

    def lookup(f_idx: np.ndarray, b_idx: np.ndarray) -> np.ndarray:
        valid = (b_idx >= 0) & (b_idx < num_bins)
        vals = mags[np.ix_(f_idx, np.clip(b_idx, 0, num_bins - 1))]
        return np.where(valid[None, :], vals, 0.0)

    m00 = lookup(f0, b0)
    m01 = lookup(f0, b1)
    m10 = lookup(f1, b0)
    m11 = lookup(f1, b1)
    bf_row = bf[None, :]
    ff_col = ff[:, None]
    mag = (1 - ff_col) * ((1 - bf_row) * m00 + bf_row * m01) + ff_col * (
        (1 - bf_row) * m10 + bf_row * m11
    )

    with np.errstate(divide="ignore"):
        db = np.where(mag > 0, 20.0 * np.log10(np.where(mag > 0, mag, 1.0)), min_db)
    norm = np.clip((db - min_db) / (max_db - min_db), 0.0, 1.0)
    return norm.T


class SpectrogramRenderer:
    """Renders SpectrogramData to an annotated PNG."""

    def render(
        self,
        spec: SpectrogramData,
        options: SpectrogramRenderOptions | None = None,
    ) -> RenderResult:
        opts = options or SpectrogramRenderOptions()
        fmin, fmax = validate_options(opts, spec.sample_rate)
        if spec.num_frames == 0 or spec.num_bins == 0:
            raise InvalidInputError(
                f"Spectrogram is empty ({spec.num_frames} frames, {spec.num_bins} bins)."
            )

        width, height = int(opts.width), int(opts.height)
        left = 80 if opts.show_frequency_labels else 20
        right = 100 if opts.show_colorbar else 20
        top = 50 if opts.show_title else 20
        bottom = 60 if opts.show_time_labels else 20
        plot_w = width - left - right
        plot_h = height - top - bottom

        logger.debug(
            "rendering spectrogram %dx%d: %d frames, %d bins",
            plot_w, plot_h, spec.num_frames, spec.num_bins,
        )
        norm = rasterize(
            spec, plot_w, plot_h, fmin, fmax, opts.frequency_scale, opts.min_db, opts.max_db
        )
        rgb = apply_colormap(norm, opts.colormap)

        image = Image.new("RGBA", (width, height), BACKGROUND)
        plot = np.concatenate([rgb, np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)], axis=-1)
        image.paste(Image.fromarray(plot), (left, top))

        duration = float(spec.times[-1]) / 1000.0 if len(spec.times) else 0.0
        freq_lines = frequency_grid(fmin, fmax)

        def freq_y(freq: float) -> float:
            return top + plot_h * (1.0 - frequency_to_position(freq, fmin, fmax, opts.frequency_scale))

        def time_x(t: float) -> float:
            return left + t / duration * plot_w

        grid = []
        if opts.show_frequency_grid:
            grid += [(left, freq_y(f), left + plot_w, freq_y(f)) for f in freq_lines]
        if opts.show_time_grid:
            grid += [(time_x(t), top, time_x(t), top + plot_h) for t in time_ticks(duration)]
        overlay_lines(image, grid)

        draw = ImageDraw.Draw(image)
        draw.rectangle([left, top, left + plot_w, top + plot_h], outline=WHITE, width=2)

        if opts.show_frequency_labels:
            for f in freq_lines:
                draw_text(draw, (left - 10, freq_y(f)), format_frequency(f), 14, anchor="rm")
            draw_vertical_text(image, (20, top + plot_h / 2), "Frequency (Hz)", 16)

        if opts.show_time_labels:
            for t in time_ticks(duration):
                label = f"{t:.1f}s" if t < 10 else f"{t:.0f}s"
                draw_text(draw, (time_x(t), top + plot_h + 10), label, 14, anchor="ma")
            draw_text(draw, (left + plot_w / 2, height - 15), "Time", 16, anchor="md")

        if opts.show_colorbar:
            self._draw_colorbar(image, draw, width - right + 20, top, plot_h, opts)

        if opts.show_title:
            draw_text(draw, (width / 2, 15), opts.title, 24, anchor="ma")

        filename = opts.filename or timestamped_filename("spectrogram")
        path = save_image(image, resolve_output_path(filename, opts.output_path))

        return RenderResult(
            image_path=str(path),
            width=width,
            height=height,
            fft_size=spec.fft_size,
            hop_size=spec.hop_size,
            num_frames=spec.num_frames,
            num_bins=spec.num_bins,
            db_range=(float(opts.min_db), float(opts.max_db)),
            frequency_range=(fmin, fmax),
            duration_seconds=duration,
            sample_rate=spec.sample_rate,
        )

    @staticmethod
    def _draw_colorbar(image, draw, x: int, top: int, bar_height: int, opts) -> None:
        bar_width = 20
        values = 1.0 - np.arange(bar_height, dtype=np.float64) / bar_height
        column = apply_colormap(values, opts.colormap)
        strip = np.repeat(column[:, None, :], bar_width, axis=1)
        alpha = np.full(strip.shape[:2] + (1,), 255, dtype=np.uint8)
        image.paste(Image.fromarray(np.concatenate([strip, alpha], axis=-1)), (x, top))
        draw.rectangle([x, top, x + bar_width, top + bar_height], outline=WHITE, width=1)
        span = opts.max_db - opts.min_db
        for i in range(COLORBAR_TICKS + 1):
            frac = i / COLORBAR_TICKS
            db = opts.min_db + frac * span
            y = top + bar_height * (1.0 - frac)
            draw_text(draw, (x + bar_width + 5, y), f"{round(db)} dB", 12, anchor="lm")


def render_spectrogram(
    spec: SpectrogramData,
    options: SpectrogramRenderOptions | None = None,
    output_path: str | Path | None = None,
) -> RenderResult:
    """Convenience wrapper around SpectrogramRenderer().render."""
    if output_path is not None:
        base = options or SpectrogramRenderOptions()
        options = replace(base, output_path=str(output_path))
    return SpectrogramRenderer().render(spec, options)
