"""Live capture through ffmpeg and input device discovery."""
from __future__ import annotations

import logging
import re
import shutil
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from mixscope.errors import CaptureError, check_range
from mixscope.io.audio import write_wav
from mixscope.types import SampleBuffer

logger = logging.getLogger(__name__)

MIN_CAPTURE_MS = 100
MAX_CAPTURE_MS = 30000
MAX_RECORDING_SECONDS = 300
DEVICE_CACHE_TTL_S = 5.0
STOP_GRACE_S = 5.0

LOOPBACK_PATTERNS = (
    "blackhole",
    "soundflower",
    "loopback",
    "existential audio",
    "aggregate device",
    "multi-output",
    "stereo mix",
    "what u hear",
    "wave out mix",
    "virtual audio cable",
    "vb-cable",
    "monitor of",
    ".monitor",
)

HOST_APIS = {
    "avfoundation": "Core Audio",
    "dshow": "DirectShow",
    "pulse": "PulseAudio",
    "alsa": "ALSA",
}


@dataclass(frozen=True)
class AudioDevice:
    id: int
    name: str
    host_api: str
    max_input_channels: int = 2
    default_sample_rate: int = 44100
    is_loopback: bool = False


@dataclass(frozen=True)
class CaptureConfig:
    sample_rate: int = 44100
    channels: int = 2
    device: int | str | None = None


def is_loopback_name(name: str) -> bool:
    lower = name.lower()
    return any(p in lower for p in LOOPBACK_PATTERNS)


def platform_format(platform: str | None = None) -> str:
    platform = platform or sys.platform
    if platform == "darwin":
        return "avfoundation"
    if platform.startswith("win"):
        return "dshow"
    if platform.startswith("linux"):
        return "pulse"
    raise CaptureError(f"Unsupported platform: {platform}")


def parse_avfoundation_devices(output: str) -> list[tuple[int, str]]:
    """
    Audio entries of `ffmpeg -f avfoundation -list_devices true -i ""`.

    Lines look like "[AVFoundation indev @ 0x...] [0] BlackHole 2ch"; only
    the section after "AVFoundation audio devices:" is read.
    """
    found = []
    in_audio = False
    for line in output.splitlines():
        if "AVFoundation audio devices:" in line:
            in_audio = True
            continue
        if "AVFoundation video devices:" in line:
            in_audio = False
            continue
        if not in_audio:
            continue
        m = re.search(r"\[(\d+)\]\s+(.+?)$", line)
        if m:
            name = m.group(2).strip()
            if name and "Error" not in name and "indev" not in name:
                found.append((int(m.group(1)), name))
    return found


def parse_dshow_devices(output: str) -> list[tuple[int, str]]:
    """Quoted names in the DirectShow audio section, numbered in order."""
    found = []
    in_audio = False
    for line in output.splitlines():
        if "DirectShow audio devices" in line:
            in_audio = True
            continue
        if "DirectShow video devices" in line:
            in_audio = False
            continue
        if in_audio:
            m = re.search(r'"(.+?)"', line)
            if m and "Alternative name" not in line:
                found.append((len(found), m.group(1)))
    return found


def parse_pactl_sources(output: str) -> list[tuple[int, str]]:
    """Tab-separated `pactl list sources short` rows; the name is column 2."""
    found = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) >= 2:
            found.append((len(found), parts[1]))
    return found


def parse_arecord_devices(output: str) -> list[tuple[int, str]]:
    """`arecord -l` cards as (card number, "<card> - <description>"), one per card."""
    found = []
    seen = set()
    for line in output.splitlines():
        m = re.search(r"card (\d+): (.+?) \[(.+?)\]", line)
        if m and int(m.group(1)) not in seen:
            seen.add(int(m.group(1)))
            found.append((int(m.group(1)), f"{m.group(2)} - {m.group(3)}"))
    return found


def pcm16_to_float(raw: bytes) -> np.ndarray:
    """Signed 16-bit little-endian PCM scaled to [-1, 1)."""
    n = len(raw) // 2
    return np.frombuffer(raw[: n * 2], dtype="<i2").astype(np.float64) / 32768.0


class CaptureService:
    """
    Records from an input device with an ffmpeg subprocess.

    `runner` has the signature of subprocess.run and is replaceable for
    tests; the device list is cached for DEVICE_CACHE_TTL_S seconds.
    """

    def __init__(
        self,
        config: CaptureConfig | None = None,
        *,
        runner=subprocess.run,
        platform: str | None = None,
        clock=time.monotonic,
        which=shutil.which,
    ):
        self.config = config or CaptureConfig()
        self._run = runner
        self._platform = platform
        self._clock = clock
        self._which = which
        self._devices: list[AudioDevice] | None = None
        self._devices_at = 0.0
        self._device_format: str | None = None

    @property
    def format(self) -> str:
        return platform_format(self._platform)

    @property
    def device_format(self) -> str:
        """Input format of the listed devices; ALSA when pactl is missing on Linux."""
        return self._device_format or self.format

    def is_available(self) -> bool:
        return self._which("ffmpeg") is not None

    def _text(self, cmd: list[str]) -> str:
        proc = self._run(cmd, capture_output=True, text=True, check=False)
        return (proc.stdout or "") + (proc.stderr or "")

    def _raw_devices(self, fmt: str) -> tuple[str, list[tuple[int, str]]]:
        """Device (id, name) pairs and the ffmpeg input format that opens them."""
        if fmt == "avfoundation":
            return fmt, parse_avfoundation_devices(
                self._text(["ffmpeg", "-hide_banner", "-f", "avfoundation", "-list_devices", "true", "-i", ""])
            )
        if fmt == "dshow":
            return fmt, parse_dshow_devices(
                self._text(["ffmpeg", "-hide_banner", "-f", "dshow", "-list_devices", "true", "-i", "dummy"])
            )
        try:
            proc = self._run(["pactl", "list", "sources", "short"], capture_output=True, text=True, check=True)
            return "pulse", parse_pactl_sources(proc.stdout)
        except (OSError, subprocess.CalledProcessError) as exc:
            logger.debug("pactl unavailable (%s); trying arecord", exc)
        try:
            return "alsa", parse_arecord_devices(self._text(["arecord", "-l"]))
        except OSError as exc:
            raise CaptureError(f"Failed to list audio devices: {exc}") from exc

    def list_devices(self, include_loopback: bool = True) -> list[AudioDevice]:
        now = self._clock()
        if self._devices is None or now - self._devices_at >= DEVICE_CACHE_TTL_S:
            try:
                fmt, raw = self._raw_devices(self.format)
            except OSError as exc:
                raise CaptureError(f"Failed to list audio devices: {exc}") from exc
            self._device_format = fmt
            self._devices = [
                AudioDevice(
                    id=index,
                    name=name,
                    host_api=HOST_APIS.get(fmt, "Unknown"),
                    is_loopback=is_loopback_name(name),
                )
                for index, name in raw
            ]
            self._devices_at = now
            logger.debug("found %d audio devices", len(self._devices))
        devices = self._devices
        return devices if include_loopback else [d for d in devices if not d.is_loopback]

    def find_device(self, id_or_name: int | str) -> AudioDevice | None:
        """By numeric id, or by case-insensitive substring of the name."""
        devices = self.list_devices()
        if isinstance(id_or_name, int) or str(id_or_name).isdigit():
            wanted = int(id_or_name)
            return next((d for d in devices if d.id == wanted), None)
        needle = str(id_or_name).lower()
        return next((d for d in devices if needle in d.name.lower()), None)

    def resolve_device(self, id_or_name: int | str | None = None) -> AudioDevice:
        """The requested device, else the first loopback, else the first input."""
        if id_or_name is not None:
            device = self.find_device(id_or_name)
            if device is None:
                raise CaptureError(f"Device not found: {id_or_name}")
            return device
        devices = self.list_devices()
        device = next((d for d in devices if d.is_loopback), None)
        device = device or next((d for d in devices if d.max_input_channels > 0), None)
        if device is None:
            raise CaptureError("No audio input device available")
        return device

    def input_spec(self, fmt: str, device: AudioDevice) -> str:
        if fmt == "avfoundation":
            return f":{device.id}"
        if fmt == "dshow":
            return f"audio={device.name}"
        if fmt == "alsa":
            return f"hw:{device.id}"
        return device.name

    def capture(self, duration_ms: float, device: int | str | None = None) -> SampleBuffer:
        """Record `duration_ms` of audio and return it as a SampleBuffer."""
        check_range("duration_ms", duration_ms, MIN_CAPTURE_MS, MAX_CAPTURE_MS)
        if not self.is_available():
            raise CaptureError("FFmpeg is not available. Install ffmpeg and retry.")
        cfg = self.config
        target = self.resolve_device(device if device is not None else cfg.device)
        fmt = self.device_format
        cmd = [
            "ffmpeg",
            "-hide_banner",
            "-loglevel", "error",
            "-f", fmt,
            "-i", self.input_spec(fmt, target),
            "-t", f"{duration_ms / 1000.0:.3f}",
            "-ar", str(cfg.sample_rate),
            "-ac", str(cfg.channels),
            "-f", "s16le",
            "pipe:1",
        ]
        logger.info("capturing %.0f ms from %s", duration_ms, target.name)
        try:
            proc = self._run(
                cmd,
                capture_output=True,
                check=False,
                timeout=duration_ms / 1000.0 + STOP_GRACE_S,
            )
        except subprocess.TimeoutExpired as exc:
            raise CaptureError(f"ffmpeg did not stop after {duration_ms} ms.") from exc
        except OSError as exc:
            raise CaptureError(f"Failed to start audio capture: {exc}") from exc
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace") if proc.stderr else ""
            raise CaptureError(f"ffmpeg capture failed: {stderr.strip()}")
        samples = pcm16_to_float(proc.stdout or b"")
        samples = samples[: (samples.size // cfg.channels) * cfg.channels]
        if samples.size == 0:
            raise CaptureError("Capture produced no audio.")
        return SampleBuffer(samples=samples, sample_rate=cfg.sample_rate, channels=cfg.channels)

    def record_to_file(
        self,
        path: str | Path,
        duration_seconds: float,
        device: int | str | None = None,
    ) -> dict:
        """Capture and write a 16-bit WAV; returns file metadata."""
        if not 0 < duration_seconds <= MAX_RECORDING_SECONDS:
            raise CaptureError(
                f"Duration must be between 0 and {MAX_RECORDING_SECONDS} seconds"
            )
        buffer = self._capture_long(duration_seconds * 1000.0, device)
        out = write_wav(path, buffer)
        return {
            "file_path": str(out),
            "duration_ms": buffer.duration_ms,
            "sample_rate": buffer.sample_rate,
            "channels": buffer.channels,
            "file_size": out.stat().st_size,
        }

    def _capture_long(self, duration_ms: float, device) -> SampleBuffer:
        """capture() in MAX_CAPTURE_MS pieces for recordings longer than one take."""
        parts = []
        remaining = duration_ms
        while remaining > 0:
            take = min(remaining, MAX_CAPTURE_MS)
            take = max(take, MIN_CAPTURE_MS)
            parts.append(self.capture(take, device))
            remaining -= take
        first = parts[0]
        # the last take may have been padded up to MIN_CAPTURE_MS
        frames = int(round(duration_ms / 1000.0 * first.sample_rate))
        samples = np.concatenate([p.samples for p in parts])[: frames * first.channels]
        return SampleBuffer(
            samples=samples,
            sample_rate=first.sample_rate,
            channels=first.channels,
        )
