"""Audio file decoding and WAV writing."""
from __future__ import annotations
import json
import logging
import shutil
import subprocess
import warnings as py_warnings
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import soundfile as sf

from mixscope.errors import DecodeError
from mixscope.types import SampleBuffer

logger = logging.getLogger(__name__)


@dataclass
class DecodedAudio:
    buffer: SampleBuffer
    backend: str
    source_channels: int
    warnings: list[str] = field(default_factory=list)


def _normalize_channels(samples: np.ndarray, *, backend: str, warnings: list[str]) -> np.ndarray:
    """Mono or stereo float64 (frames, channels); wider layouts are averaged to mono."""
    x = np.asarray(samples, dtype=np.float64)
    if x.ndim == 1:
        return x[:, None]
    if x.ndim != 2:
        raise DecodeError("Decoded audio must be 1D or 2D array.")
    if x.shape[1] in (1, 2):
        return x
    msg = f"{backend}: downmixed {x.shape[1]} channels to mono."
    logger.warning(msg)
    warnings.append(msg)
    return np.mean(x, axis=1, keepdims=True)


def _decode_soundfile(path: str) -> tuple[np.ndarray, int, list[str]]:
    with py_warnings.catch_warnings(record=True) as caught:
        py_warnings.simplefilter("always")
        data, sr = sf.read(path, always_2d=True, dtype="float64")
    return data, int(sr), [str(w.message) for w in caught]


def _ffprobe_info(path: str) -> tuple[int, int]:
    """(sample_rate, channels) of the first audio stream."""
    ffprobe = shutil.which("ffprobe")
    if not ffprobe:
        raise DecodeError("ffprobe not found for ffmpeg backend.")
    cmd = [
        ffprobe,
        "-v", "error",
        "-select_streams", "a:0",
        "-show_entries", "stream=sample_rate,channels",
        "-of", "json",
        path,
    ]
    proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        raise DecodeError(f"ffprobe failed: {proc.stderr.strip()}")
    streams = json.loads(proc.stdout or "{}").get("streams", [])
    if not streams:
        raise DecodeError("ffprobe reported no audio streams.")
    return int(streams[0]["sample_rate"]), int(streams[0]["channels"])


def decode_f32le(raw: bytes, channels: int, warnings: list[str] | None = None) -> np.ndarray:
    """Interpret raw little-endian float32 PCM as a (frames, channels) array."""
    data = np.frombuffer(raw, dtype="<f4")
    if channels > 0:
        n = (data.size // channels) * channels
        if n != data.size:
            if warnings is not None:
                warnings.append("ffmpeg: trimmed partial frame at end of stream.")
            data = data[:n]
        data = data.reshape(-1, channels)
    return data.astype(np.float64)


def _decode_ffmpeg(path: str) -> tuple[np.ndarray, int, list[str]]:
    ffmpeg = shutil.which("ffmpeg")
    if not ffmpeg:
        raise DecodeError("ffmpeg backend not available.")
    sr, ch = _ffprobe_info(path)
    cmd = [
        ffmpeg,
        "-v", "warning",
        "-i", path,
        "-f", "f32le",
        "-acodec", "pcm_f32le",
        "-vn",
        "pipe:1",
    ]
    proc = subprocess.run(cmd, capture_output=True, check=False)
    stderr = proc.stderr.decode("utf-8", errors="replace")
    warn_list = [line for line in stderr.splitlines() if line.strip()]
    if proc.returncode != 0:
        raise DecodeError(f"ffmpeg decode failed: {stderr.strip()[-200:]}")
    return decode_f32le(proc.stdout, ch, warn_list), sr, warn_list


def decode_audio(path: str | Path) -> DecodedAudio:
    """
    Decode an audio file into a mono or stereo SampleBuffer.

    WAV, FLAC, AIFF and OGG go through soundfile; anything libsndfile
    rejects falls back to ffmpeg when it is installed.
    """
    path = str(path)
    warnings_list: list[str] = []
    backend = "soundfile"
    try:
        data, sr, warn_list = _decode_soundfile(path)
    except RuntimeError as exc:
        logger.info("soundfile could not decode %s (%s); trying ffmpeg", path, exc)
        warnings_list.append(f"soundfile decode failed: {exc}")
        backend = "ffmpeg"
        data, sr, warn_list = _decode_ffmpeg(path)
    warnings_list.extend(warn_list)

    source_channels = int(data.shape[1]) if np.ndim(data) == 2 else 1
    matrix = _normalize_channels(data, backend=backend, warnings=warnings_list)
    buffer = SampleBuffer.from_channels(
        matrix[:, 0] if matrix.shape[1] == 1 else matrix, sr
    )
    logger.debug(
        "decoded %s via %s: %d frames, %d Hz, %d ch",
        path, backend, buffer.frames_count, sr, buffer.channels,
    )
    return DecodedAudio(buffer, backend, source_channels, warnings_list)


def load_audio(path: str | Path) -> SampleBuffer:
    """Decode `path` and return only the samples."""
    return decode_audio(path).buffer


def write_wav(path: str | Path, buffer: SampleBuffer, subtype: str = "PCM_16") -> Path:
    """Write a SampleBuffer as WAV (16-bit PCM by default)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = np.clip(buffer.as_matrix(), -1.0, 1.0)
    sf.write(str(path), data, int(buffer.sample_rate), subtype=subtype, format="WAV")
    logger.info("wrote %s (%.1f ms)", path, buffer.duration_ms)
    return path
