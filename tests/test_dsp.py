from __future__ import annotations

import numpy as np
import pytest

from mixscope.dsp.features import (
    FRAME_BLOCK,
    NumpyFeatureProvider,
    average_features,
    spectral_centroid,
    spectral_flux_series,
)
from mixscope.dsp.framing import block_signal, frame_signal, frame_times_ms, num_frames
from mixscope.dsp.mel import hz_to_mel, mel_filterbank, mel_to_hz
from mixscope.dsp.signal import (
    bin_to_hz,
    envelope_follower,
    find_peaks,
    frequency_range_energy,
    hz_to_bin,
    linear_to_db,
    pearson,
    power_to_db,
)
from mixscope.errors import ParameterError
from tests.conftest import SR, sine, white_noise


def test_num_frames_drops_partial_tail():
    assert num_frames(4096, 2048, 512) == 5
    assert num_frames(2047, 2048, 512) == 0
    with pytest.raises(ParameterError):
        num_frames(4096, 2048, 0)


def test_frame_signal_hop_offsets():
    x = np.arange(10, dtype=np.float64)
    frames = frame_signal(x, 4, 3)
    assert frames.shape == (3, 4)
    assert np.array_equal(frames[1], [3.0, 4.0, 5.0, 6.0])


def test_frame_signal_short_input_is_empty():
    frames = frame_signal(np.zeros(100), 2048, 512)
    assert frames.shape == (0, 2048)


def test_frame_times_ms():
    times = frame_times_ms(3, 512, 44100)
    assert np.allclose(times, [0.0, 512 / 44.1, 1024 / 44.1])


def test_block_signal_keeps_trailing_axes():
    x = np.arange(14).reshape(7, 2)
    blocks = block_signal(x, 3)
    assert blocks.shape == (2, 3, 2)


def test_db_conversions_floor():
    assert linear_to_db(0.0) == -100.0
    assert linear_to_db(1.0) == 0.0
    assert np.isclose(linear_to_db(0.5), -6.0206, atol=1e-4)
    assert power_to_db(-1.0) == -100.0
    assert np.isclose(power_to_db(10.0), 10.0)


def test_pearson_edge_cases():
    flat = np.ones(8)
    assert pearson(flat, flat) == 1.0
    assert pearson(flat, np.arange(8.0)) == 0.0
    x = np.arange(8.0)
    assert np.isclose(pearson(x, -x), -1.0)


def test_find_peaks_min_distance():
    data = np.array([0.0, 1.0, 0.0, 2.0, 0.0, 0.5, 0.0])
    assert find_peaks(data, 0.4, 1) == [1, 3, 5]
    assert find_peaks(data, 0.4, 3) == [1, 5]
    assert find_peaks(data, 1.5, 1) == [3]


def test_envelope_follower_tracks_constant():
    env = envelope_follower(np.ones(SR // 10), SR, 1.0, 50.0)
    assert env[0] < env[-1]
    assert np.isclose(env[-1], 1.0, atol=1e-6)


def test_frequency_range_energy_bins():
    spectrum = np.ones(1024)
    # 0-441 Hz at 44100/2048 Hz per bin covers bins 0..19
    assert frequency_range_energy(spectrum, 0.0, 441.0, 2048, 44100) == 20.0
    assert frequency_range_energy(spectrum, 500.0, 400.0, 2048, 44100) == 0.0


def test_mel_round_trip_and_filterbank_shape():
    hz = np.array([0.0, 440.0, 8000.0])
    assert np.allclose(mel_to_hz(hz_to_mel(hz)), hz)
    fb = mel_filterbank(40, 2048, 44100)
    assert fb.shape == (40, 1024)
    assert np.all(fb >= 0.0)
    assert np.max(fb) <= 1.0
    assert np.all(np.sum(fb, axis=1) > 0)


def test_centroid_of_sine_near_frequency():
    provider = NumpyFeatureProvider(2048, SR)
    frames = frame_signal(sine(1000.0, 0.5), 2048, 512)
    centroid = provider.extract_frames(["spectral_centroid"], frames)["spectral_centroid"]
    hz = float(np.mean(centroid)) * SR / 2.0
    assert abs(hz - 1000.0) < 100.0


def test_flatness_tone_vs_noise():
    provider = NumpyFeatureProvider(2048, SR)
    tone = provider.extract(["spectral_flatness"], sine(1000.0, 0.1)[:2048])
    noise = provider.extract(["spectral_flatness"], white_noise(0.1)[:2048])
    assert tone["spectral_flatness"] < 0.1
    assert noise["spectral_flatness"] > 0.5


def test_rolloff_above_tone():
    provider = NumpyFeatureProvider(2048, SR)
    out = provider.extract(["spectral_rolloff"], sine(1000.0, 0.1)[:2048])
    assert 900.0 < out["spectral_rolloff"] < 5000.0


def test_mfcc_shape_and_unknown_feature():
    provider = NumpyFeatureProvider(1024, SR, num_mel_bands=32, num_mfcc=13)
    frames = frame_signal(white_noise(0.2), 1024, 512)
    out = provider.extract_frames(["mfcc", "rms"], frames)
    assert out["mfcc"].shape == (frames.shape[0], 13)
    assert out["rms"].shape == (frames.shape[0],)
    with pytest.raises(ParameterError):
        provider.extract_frames(["chroma"], frames)


def test_silent_frame_features_are_zero():
    amp = np.zeros((2, 16))
    assert np.array_equal(spectral_centroid(amp), [0.0, 0.0])


def test_spectral_flux_only_counts_increases():
    mags = np.array([[1.0, 1.0], [2.0, 0.0], [2.0, 0.0]])
    flux = spectral_flux_series(mags)
    assert np.allclose(flux, [0.5, 0.0])
    assert spectral_flux_series(mags[:1]).size == 0


def test_average_features_empty_frames():
    out = average_features({"rms": np.zeros(0), "mfcc": np.zeros((0, 13))})
    assert out["rms"] == 0.0
    assert out["mfcc"].shape == (13,)


@pytest.mark.parametrize("fft_size,sr", [(2048, 44100), (4096, 48000), (512, 8000)])
def test_bin_frequency_round_trip(fft_size, sr):
    for b in range(fft_size // 2):
        assert hz_to_bin(bin_to_hz(b, fft_size, sr), fft_size, sr) == b


def test_long_inputs_are_extracted_in_blocks():
    provider = NumpyFeatureProvider(256, SR, num_mel_bands=20, num_mfcc=5)
    frames = frame_signal(white_noise(seconds=2.0), 256, 128)
    assert frames.shape[0] > 2 * FRAME_BLOCK
    out = provider.extract_frames(["amplitude_spectrum", "rms", "mfcc"], frames)
    assert out["amplitude_spectrum"].shape == (frames.shape[0], 128)
    assert out["mfcc"].shape == (frames.shape[0], 5)
    last = provider.extract(["amplitude_spectrum", "rms"], frames[-1])
    assert np.allclose(out["amplitude_spectrum"][-1], last["amplitude_spectrum"])
    assert np.isclose(out["rms"][-1], last["rms"])
    whole = np.abs(np.fft.rfft(frames * np.hanning(256), axis=-1))[:, :128]
    assert np.allclose(out["amplitude_spectrum"], whole)


def test_block_envelope_follows_block_peaks():
    x = np.concatenate([np.zeros(1000), np.ones(SR // 10)])
    env = envelope_follower(x, SR, 1.0, 50.0, block_size=44)
    assert env.shape == x.shape
    assert np.all(env[:968] == 0.0)
    assert np.isclose(env[-1], 1.0, atol=1e-6)
    assert np.all(np.diff(env) >= 0)
