from __future__ import annotations

import numpy as np
import pytest
import soundfile as sf

from mixscope.errors import DecodeError
from mixscope.io.audio import decode_audio, decode_f32le, load_audio, write_wav
from mixscope.types import SampleBuffer


def test_decode_stereo_wav(tmp_path):
    fs = 48000
    t = np.arange(0, 0.1, 1.0 / fs)
    mono = 0.1 * np.sin(2.0 * np.pi * 440.0 * t)
    stereo = np.stack([mono, mono * 0.5], axis=1)
    path = tmp_path / "tone.wav"
    sf.write(path, stereo, fs)

    decoded = decode_audio(path)
    assert decoded.backend == "soundfile"
    assert decoded.source_channels == 2
    buf = decoded.buffer
    assert buf.channels == 2
    assert buf.sample_rate == fs
    assert buf.frames_count == mono.size
    assert np.allclose(buf.left, mono, atol=1e-4)
    assert np.allclose(buf.right, mono * 0.5, atol=1e-4)


def test_multichannel_is_downmixed_to_mono(tmp_path):
    fs = 44100
    data = np.tile([0.4, 0.2, 0.0, -0.2], (1000, 1))
    path = tmp_path / "quad.wav"
    sf.write(path, data, fs)

    decoded = decode_audio(str(path))
    assert decoded.source_channels == 4
    assert decoded.buffer.channels == 1
    assert np.allclose(decoded.buffer.samples, 0.1, atol=1e-4)
    assert any("downmixed 4 channels" in w for w in decoded.warnings)


def test_write_wav_round_trip(tmp_path):
    x = np.linspace(-1.0, 1.0, 200)
    buf = SampleBuffer.from_channels(np.column_stack([x, -x]), 22050)
    out = write_wav(tmp_path / "nested" / "out.wav", buf)
    info = sf.info(str(out))
    assert info.subtype == "PCM_16"
    assert info.channels == 2
    back = load_audio(out)
    assert back.sample_rate == 22050
    assert np.allclose(back.left, x, atol=1.0 / 16384)


def test_write_wav_clips_out_of_range(tmp_path):
    buf = SampleBuffer(samples=np.array([2.0, -2.0, 0.5]), sample_rate=8000)
    back = load_audio(write_wav(tmp_path / "hot.wav", buf, subtype="FLOAT"))
    assert np.allclose(back.samples, [1.0, -1.0, 0.5])


def test_decode_f32le_trims_partial_frame():
    raw = np.array([0.5, -0.5, 0.25], dtype="<f4").tobytes()
    warnings: list[str] = []
    out = decode_f32le(raw, 2, warnings)
    assert out.shape == (1, 2)
    assert np.allclose(out[0], [0.5, -0.5])
    assert warnings == ["ffmpeg: trimmed partial frame at end of stream."]


def test_missing_file_raises_decode_error(tmp_path):
    with pytest.raises(DecodeError):
        decode_audio(tmp_path / "missing.wav")
