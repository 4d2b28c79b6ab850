"""Mel spectrogram, waveform and frequency balance charts."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw

from mixscope.dsp.signal import DB_FLOOR
from mixscope.errors import InvalidInputError, check_choice, check_range
from mixscope.render.colormaps import COLORMAP_NAMES, apply_colormap
from mixscope.render.drawing import CHART_BACKGROUND, WHITE, draw_text, draw_vertical_text
from mixscope.render.output import resolve_output_path, save_image, timestamped_filename
from mixscope.types import FrequencyBalance, MelSpectrogramData, SampleBuffer

logger = logging.getLogger(__name__)

AUTO_RANGE_FLOOR_DB = -80.0
TIME_TICKS = 5
MIN_WIDTH, MAX_WIDTH = 200, 7680
MIN_HEIGHT, MAX_HEIGHT = 100, 4320
WAVEFORM_COLOUR = (16, 185, 129, 255)
CENTRE_LINE = (51, 51, 51, 255)
AXIS = (102, 102, 102, 255)
BAND_COLOURS = (
    (59, 7, 100, 255),
    (79, 70, 229, 255),
    (8, 145, 178, 255),
    (16, 185, 129, 255),
    (245, 158, 11, 255),
    (239, 68, 68, 255),
    (236, 72, 153, 255),
)


@dataclass(frozen=True)
class ChartOptions:
    width: int | None = None
    height: int | None = None
    colormap: str = "magma"
    show_labels: bool = True
    output_path: str | Path | None = None
    filename: str | None = None


def _auto_db_range(values: np.ndarray) -> tuple[np.ndarray, float, float]:
    """dB values plus the (min, max) display range, min clamped to -80 dB."""
    with np.errstate(divide="ignore"):
        db = np.where(values > 0, 20.0 * np.log10(np.where(values > 0, values, 1.0)), DB_FLOOR)
    lo = max(float(np.min(db)), AUTO_RANGE_FLOOR_DB)
    hi = float(np.max(db))
    return db, lo, hi


def _chart_size(width: int, height: int) -> tuple[int, int]:
    check_range("width", width, MIN_WIDTH, MAX_WIDTH)
    check_range("height", height, MIN_HEIGHT, MAX_HEIGHT)
    return int(width), int(height)


def _time_axis(draw, plot_x, plot_w, y, duration_s, decimals=1) -> None:
    for i in range(TIME_TICKS + 1):
        t = i / TIME_TICKS * duration_s
        draw_text(draw, (plot_x + i / TIME_TICKS * plot_w, y), f"{t:.{decimals}f}", 12, anchor="ma")


def render_mel_spectrogram(data: MelSpectrogramData, options: ChartOptions | None = None) -> Path:
    """Mel bands over time, auto-scaled to the data's dB range."""
    opts = options or ChartOptions()
    check_choice("colormap", opts.colormap, COLORMAP_NAMES)
    mel = np.asarray(data.magnitudes, dtype=np.float64)
    if mel.ndim != 2 or mel.shape[0] == 0 or mel.shape[1] == 0:
        raise InvalidInputError("Mel spectrogram is empty.")
    width, height = _chart_size(opts.width or 800, opts.height or 400)
    pad = 60 if opts.show_labels else 10
    plot_x, plot_y = pad, 10
    plot_w = width - pad - 20
    plot_h = height - (50 if opts.show_labels else 20)

    db, lo, hi = _auto_db_range(mel)
    span = hi - lo
    norm = (db - lo) / span if span > 0 else np.zeros_like(db)
    num_frames, num_bands = mel.shape
    cols = np.minimum((np.arange(plot_w) * num_frames) // plot_w, num_frames - 1)
    rows = num_bands - 1 - np.minimum((np.arange(plot_h) * num_bands) // plot_h, num_bands - 1)
    rgb = apply_colormap(norm[np.ix_(cols, rows)].T, opts.colormap)

    image = Image.new("RGBA", (width, height), CHART_BACKGROUND)
    alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
    image.paste(Image.fromarray(np.concatenate([rgb, alpha], axis=-1)), (plot_x, plot_y))
    draw = ImageDraw.Draw(image)
    if opts.show_labels:
        draw_vertical_text(image, (15, plot_y + plot_h / 2), "Mel Band", 12)
        duration = float(data.times[-1]) / 1000.0 if len(data.times) else 0.0
        _time_axis(draw, plot_x, plot_w, height - 35, duration)
        draw_text(draw, (plot_x + plot_w / 2, height - 18), "Time (s)", 12, anchor="ma")
        draw_text(draw, (width / 2, height - 2), "Mel Spectrogram", 14, anchor="md")

    filename = opts.filename or timestamped_filename("mel-spectrogram")
    return save_image(image, resolve_output_path(filename, opts.output_path))


def waveform_envelope(x: np.ndarray, columns: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Per-column (min, max) of a signal, both including 0.

    Column c spans samples [floor(c/columns*n), +ceil(n/columns)).
    """
    x = np.asarray(x, dtype=np.float64)
    n = x.size
    lows = np.zeros(columns, dtype=np.float64)
    highs = np.zeros(columns, dtype=np.float64)
    if n == 0 or columns <= 0:
        return lows, highs
    per = int(np.ceil(n / columns))
    starts = (np.arange(columns) * n) // columns
    for c, s in enumerate(starts.tolist()):
        seg = x[s:min(s + per, n)]
        if seg.size:
            lows[c] = min(0.0, float(seg.min()))
            highs[c] = max(0.0, float(seg.max()))
    return lows, highs


def render_waveform(buffer: SampleBuffer, options: ChartOptions | None = None) -> Path:
    """Min/max envelope per pixel column; one lane per channel."""
    opts = options or ChartOptions()
    if buffer.frames_count == 0:
        raise InvalidInputError("Cannot render an empty buffer.")
    width, height = _chart_size(opts.width or 800, opts.height or 200 * buffer.channels)
    pad = 50 if opts.show_labels else 10
    plot_x, plot_y = pad, 10
    plot_w = width - pad - 20
    plot_h = height - (40 if opts.show_labels else 20)
    lane_h = plot_h / buffer.channels

    image = Image.new("RGBA", (width, height), CHART_BACKGROUND)
    draw = ImageDraw.Draw(image)
    for ch in range(buffer.channels):
        centre = plot_y + lane_h * ch + lane_h / 2
        draw.line([(plot_x, centre), (plot_x + plot_w, centre)], fill=CENTRE_LINE, width=1)
        lows, highs = waveform_envelope(buffer.channel(ch), plot_w)
        half = lane_h / 2
        for c in range(plot_w):
            draw.line(
                [(plot_x + c, centre - highs[c] * half), (plot_x + c, centre - lows[c] * half)],
                fill=WAVEFORM_COLOUR,
                width=1,
            )
    if opts.show_labels:
        draw_vertical_text(image, (15, plot_y + plot_h / 2), "Amplitude", 12)
        _time_axis(draw, plot_x, plot_w, height - 32, buffer.duration_seconds, decimals=2)
        draw_text(draw, (plot_x + plot_w / 2, height - 2), "Time (s)", 12, anchor="md")

    filename = opts.filename or timestamped_filename("waveform")
    return save_image(image, resolve_output_path(filename, opts.output_path))


def render_frequency_balance(balance: FrequencyBalance, options: ChartOptions | None = None) -> Path:
    """Bar chart of band percentages with the balance score."""
    opts = options or ChartOptions()
    if not balance.bands:
        raise InvalidInputError("Frequency balance has no bands.")
    width, height = _chart_size(opts.width or 600, opts.height or 400)
    pad = 80 if opts.show_labels else 20
    plot_x, plot_y = pad, 30
    plot_w = width - pad - 40
    plot_h = height - (80 if opts.show_labels else 40)

    image = Image.new("RGBA", (width, height), CHART_BACKGROUND)
    draw = ImageDraw.Draw(image)
    if opts.show_labels:
        for i in range(5):
            pct = i * 25
            y = plot_y + plot_h - pct / 100.0 * plot_h
            draw.line([(plot_x, y), (plot_x + plot_w, y)], fill=CENTRE_LINE, width=1)
            draw_text(draw, (plot_x - 5, y), f"{pct}%", 12, anchor="rm")

    slot = plot_w / len(balance.bands)
    bar_w, gap = slot * 0.8, slot * 0.2
    for i, energy in enumerate(balance.bands):
        bar_h = energy.percentage / 100.0 * plot_h
        x = plot_x + i * slot + gap / 2
        y = plot_y + plot_h - bar_h
        if bar_h > 0:
            draw.rectangle([x, y, x + bar_w, plot_y + plot_h], fill=BAND_COLOURS[i % len(BAND_COLOURS)])
        draw_text(draw, (x + bar_w / 2, y - 5), f"{energy.percentage:.1f}%", 12, anchor="md")
        if opts.show_labels:
            draw_text(draw, (x + bar_w / 2, plot_y + plot_h + 8), energy.band.name, 11, anchor="ma")

    draw.line([(plot_x, plot_y), (plot_x, plot_y + plot_h), (plot_x + plot_w, plot_y + plot_h)], fill=AXIS, width=1)
    if opts.show_labels:
        draw_vertical_text(image, (20, plot_y + plot_h / 2), "Energy (%)", 12)
        draw_text(draw, (width / 2, 8), "Frequency Balance", 16, anchor="ma")
        draw_text(
            draw,
            (width / 2, height - 4),
            f"Balance Score: {balance.balance_score:g}/100 | Dominant: {balance.dominant_band}",
            12,
            anchor="md",
            fill=WHITE,
        )

    filename = opts.filename or timestamped_filename("frequency-balance")
    return save_image(image, resolve_output_path(filename, opts.output_path))
