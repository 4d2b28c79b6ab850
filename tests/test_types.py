from __future__ import annotations

import numpy as np
import pytest

from mixscope.errors import InvalidInputError
from mixscope.types import SampleBuffer


def test_sample_buffer_interleaving():
    buf = SampleBuffer(samples=np.array([1.0, -1.0, 0.5, 0.0]), sample_rate=4, channels=2)
    assert buf.frames_count == 2
    assert buf.duration_ms == 500.0
    assert np.array_equal(buf.left, [1.0, 0.5])
    assert np.array_equal(buf.right, [-1.0, 0.0])
    assert np.allclose(buf.to_mono(), [0.0, 0.25])
    assert buf.as_matrix().shape == (2, 2)


def test_sample_buffer_from_channels():
    data = np.array([[0.1, 0.2], [0.3, 0.4]])
    buf = SampleBuffer.from_channels(data, 48000)
    assert buf.channels == 2
    assert np.array_equal(buf.samples, [0.1, 0.2, 0.3, 0.4])
    mono = SampleBuffer.from_channels(np.zeros(3), 48000)
    assert mono.channels == 1
    assert np.array_equal(mono.right, mono.left)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"samples": np.zeros(6), "sample_rate": 44100, "channels": 3},
        {"samples": np.zeros(5), "sample_rate": 44100, "channels": 2},
        {"samples": np.zeros(4), "sample_rate": 0},
        {"samples": np.zeros((2, 2)), "sample_rate": 44100},
    ],
)
def test_sample_buffer_rejects_bad_layout(kwargs):
    with pytest.raises(InvalidInputError):
        SampleBuffer(**kwargs)


def test_channel_index_checked():
    buf = SampleBuffer(samples=np.zeros(4), sample_rate=8000)
    with pytest.raises(InvalidInputError):
        buf.channel(1)
