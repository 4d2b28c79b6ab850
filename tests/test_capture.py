from __future__ import annotations

from types import SimpleNamespace

import numpy as np
import pytest
import soundfile as sf

from mixscope.errors import CaptureError, ParameterError
from mixscope.io.capture import (
    CaptureConfig,
    CaptureService,
    is_loopback_name,
    parse_arecord_devices,
    parse_avfoundation_devices,
    parse_dshow_devices,
    parse_pactl_sources,
    pcm16_to_float,
    platform_format,
)

AVFOUNDATION_OUTPUT = """\
[AVFoundation indev @ 0x7f8] AVFoundation video devices:
[AVFoundation indev @ 0x7f8] [0] FaceTime HD Camera
[AVFoundation indev @ 0x7f8] AVFoundation audio devices:
[AVFoundation indev @ 0x7f8] [0] BlackHole 2ch
[AVFoundation indev @ 0x7f8] [1] MacBook Pro Microphone
"""

DSHOW_OUTPUT = """\
[dshow @ 000001] DirectShow video devices (some may be both video and audio devices)
[dshow @ 000001]  "Integrated Camera"
[dshow @ 000001] DirectShow audio devices
[dshow @ 000001]  "Microphone (Realtek Audio)"
[dshow @ 000001]     Alternative name "@device_cm_{33D9A762}"
[dshow @ 000001]  "Stereo Mix (Realtek Audio)"
"""

PACTL_OUTPUT = (
    "0\talsa_output.pci.analog-stereo.monitor\tmodule-alsa-card.c\ts16le 2ch 44100Hz\tSUSPENDED\n"
    "1\talsa_input.usb-mic.analog-stereo\tmodule-alsa-card.c\ts16le 2ch 44100Hz\tRUNNING\n"
)

ARECORD_OUTPUT = """\
**** List of CAPTURE Hardware Devices ****
card 0: PCH [HDA Intel PCH], device 0: ALC3246 Analog [ALC3246 Analog]
card 1: Mic [USB Microphone], device 0: USB Audio [USB Audio]
"""


class FakeRunner:
    """Stands in for subprocess.run; answers pactl and ffmpeg calls."""

    def __init__(self, pcm: bytes = b"", returncode: int = 0, stderr: bytes = b""):
        self.calls: list[list[str]] = []
        self.pcm = pcm
        self.returncode = returncode
        self.stderr = stderr

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        if cmd[0] == "pactl":
            return SimpleNamespace(stdout=PACTL_OUTPUT, stderr="", returncode=0)
        return SimpleNamespace(stdout=self.pcm, stderr=self.stderr, returncode=self.returncode)

    def captures(self) -> list[list[str]]:
        return [c for c in self.calls if c[0] == "ffmpeg"]


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _pcm(frames: int, channels: int = 2, value: int = 16384) -> bytes:
    return np.full(frames * channels, value, dtype="<i2").tobytes()


def _service(runner, **kwargs) -> CaptureService:
    return CaptureService(
        kwargs.pop("config", None),
        runner=runner,
        platform="linux",
        which=lambda name: f"/usr/bin/{name}",
        **kwargs,
    )


def test_parse_avfoundation_audio_section_only():
    assert parse_avfoundation_devices(AVFOUNDATION_OUTPUT) == [
        (0, "BlackHole 2ch"),
        (1, "MacBook Pro Microphone"),
    ]


def test_parse_dshow_skips_alternative_names():
    assert parse_dshow_devices(DSHOW_OUTPUT) == [
        (0, "Microphone (Realtek Audio)"),
        (1, "Stereo Mix (Realtek Audio)"),
    ]


def test_parse_pactl_and_arecord():
    assert parse_pactl_sources(PACTL_OUTPUT) == [
        (0, "alsa_output.pci.analog-stereo.monitor"),
        (1, "alsa_input.usb-mic.analog-stereo"),
    ]
    assert parse_arecord_devices(ARECORD_OUTPUT) == [
        (0, "PCH - HDA Intel PCH"),
        (1, "Mic - USB Microphone"),
    ]


def test_loopback_names():
    assert is_loopback_name("BlackHole 2ch")
    assert is_loopback_name("Stereo Mix (Realtek Audio)")
    assert is_loopback_name("alsa_output.pci.analog-stereo.monitor")
    assert not is_loopback_name("MacBook Pro Microphone")


def test_platform_format():
    assert platform_format("darwin") == "avfoundation"
    assert platform_format("win32") == "dshow"
    assert platform_format("linux") == "pulse"
    with pytest.raises(CaptureError):
        platform_format("sunos5")


def test_pcm16_to_float():
    raw = np.array([-32768, 0, 16384], dtype="<i2").tobytes() + b"\x01"
    assert np.allclose(pcm16_to_float(raw), [-1.0, 0.0, 0.5])


def test_device_list_is_cached():
    runner = FakeRunner()
    clock = Clock()
    service = _service(runner, clock=clock)
    devices = service.list_devices()
    assert [d.name for d in devices][0].endswith(".monitor")
    assert devices[0].is_loopback and devices[0].host_api == "PulseAudio"
    service.list_devices()
    assert len(runner.calls) == 1
    clock.now = 10.0
    service.list_devices(include_loopback=False)
    assert len(runner.calls) == 2


def test_find_and_resolve_device():
    service = _service(FakeRunner())
    assert service.find_device(1).name == "alsa_input.usb-mic.analog-stereo"
    assert service.find_device("USB-MIC").id == 1
    assert service.find_device("missing") is None
    assert service.resolve_device().is_loopback
    with pytest.raises(CaptureError):
        service.resolve_device("missing")


def test_capture_returns_buffer():
    runner = FakeRunner(pcm=_pcm(4410))
    service = _service(runner)
    buf = service.capture(100, device=1)
    assert buf.channels == 2
    assert buf.sample_rate == 44100
    assert buf.frames_count == 4410
    assert np.allclose(buf.samples, 0.5)
    cmd = runner.captures()[0]
    assert cmd[cmd.index("-i") + 1] == "alsa_input.usb-mic.analog-stereo"
    assert cmd[cmd.index("-t") + 1] == "0.100"
    assert cmd[cmd.index("-f", cmd.index("-t")) + 1] == "s16le"


def test_capture_validation_and_failures():
    with pytest.raises(ParameterError):
        _service(FakeRunner(pcm=_pcm(10))).capture(50)
    with pytest.raises(CaptureError, match="FFmpeg is not available"):
        CaptureService(runner=FakeRunner(), platform="linux", which=lambda name: None).capture(500)
    with pytest.raises(CaptureError, match="device busy"):
        _service(FakeRunner(returncode=1, stderr=b"device busy")).capture(500)
    with pytest.raises(CaptureError, match="no audio"):
        _service(FakeRunner(pcm=b"")).capture(500)


def test_long_recordings_are_captured_in_pieces(tmp_path):
    runner = FakeRunner(pcm=_pcm(100, channels=1))
    service = _service(runner, config=CaptureConfig(sample_rate=8000, channels=1))
    info = service.record_to_file(tmp_path / "take.wav", 45.0)
    durations = [c[c.index("-t") + 1] for c in runner.captures()]
    assert durations == ["30.000", "15.000"]
    assert info["channels"] == 1
    assert info["sample_rate"] == 8000
    assert info["file_size"] > 0
    data, sr = sf.read(info["file_path"])
    assert sr == 8000
    assert data.shape == (200,)


def test_record_duration_limits(tmp_path):
    service = _service(FakeRunner(pcm=_pcm(10)))
    with pytest.raises(CaptureError):
        service.record_to_file(tmp_path / "x.wav", 0)
    with pytest.raises(CaptureError):
        service.record_to_file(tmp_path / "x.wav", 301)


class NoPulseRunner(FakeRunner):
    def __call__(self, cmd, **kwargs):
        if cmd[0] == "pactl":
            self.calls.append(list(cmd))
            raise FileNotFoundError("pactl")
        if cmd[0] == "arecord":
            self.calls.append(list(cmd))
            return SimpleNamespace(stdout=ARECORD_OUTPUT, stderr="", returncode=0)
        return super().__call__(cmd, **kwargs)


def test_arecord_fallback_captures_through_alsa():
    runner = NoPulseRunner(pcm=_pcm(4410))
    service = _service(runner)
    devices = service.list_devices()
    assert [d.host_api for d in devices] == ["ALSA", "ALSA"]
    assert service.device_format == "alsa"
    service.capture(100, device=1)
    cmd = runner.captures()[0]
    assert cmd[cmd.index("-f") + 1] == "alsa"
    assert cmd[cmd.index("-i") + 1] == "hw:1"


def test_arecord_lists_each_card_once():
    output = ARECORD_OUTPUT + "card 1: Mic [USB Microphone], device 1: USB Audio #1 [USB Audio #1]\n"
    assert [card for card, _ in parse_arecord_devices(output)] == [0, 1]


def test_padded_last_take_is_trimmed(tmp_path):
    runner = FakeRunner(pcm=_pcm(30000, channels=1))
    service = _service(runner, config=CaptureConfig(sample_rate=1000, channels=1))
    info = service.record_to_file(tmp_path / "take.wav", 30.05)
    durations = [c[c.index("-t") + 1] for c in runner.captures()]
    assert durations == ["30.000", "0.100"]
    assert info["duration_ms"] == pytest.approx(30050.0)
    data, _ = sf.read(info["file_path"])
    assert data.shape == (30050,)
