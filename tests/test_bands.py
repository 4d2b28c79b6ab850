from __future__ import annotations

import numpy as np
import pytest

from mixscope.analysis.bands import (
    SIMPLE_BANDS,
    STANDARD_BANDS,
    balance_recommendation,
    balance_score,
    band_energies,
    dominant_band,
    frequency_balance,
)
from mixscope.analysis.spectral import analyze_frequency_balance
from mixscope.types import BandEnergy, FrequencyBand
from tests.conftest import mono_buffer, sine

FFT = 2048
SR = 44100


def _spectrum_with_energy(lo_hz: float, hi_hz: float) -> np.ndarray:
    freqs = np.arange(FFT // 2) * SR / FFT
    return np.where((freqs >= lo_hz) & (freqs < hi_hz), 1.0, 0.0)


def test_band_shares_relative_to_bands_sum_to_100():
    rng = np.random.default_rng(1)
    spectrum = rng.random(FFT // 2)
    energies = band_energies(spectrum, SR, FFT, STANDARD_BANDS, relative_to="bands")
    assert np.isclose(sum(e.percentage for e in energies), 100.0)


def test_band_shares_relative_to_spectrum_exclude_out_of_band_bins():
    # bins below 20 Hz and above 20 kHz hold energy no band covers
    spectrum = np.ones(FFT // 2)
    energies = band_energies(spectrum, SR, FFT, STANDARD_BANDS, relative_to="spectrum")
    assert sum(e.percentage for e in energies) < 100.0


def test_band_energies_rejects_unknown_reference():
    with pytest.raises(ValueError):
        band_energies(np.ones(8), SR, 16, SIMPLE_BANDS, relative_to="peak")


def test_silent_spectrum_gives_zero_shares():
    energies = band_energies(np.zeros(FFT // 2), SR, FFT)
    assert all(e.percentage == 0.0 for e in energies)
    assert all(e.energy_db == -100.0 for e in energies)


def test_frequency_balance_dominant_bass():
    balance = frequency_balance(_spectrum_with_energy(60, 250), SR, FFT)
    assert balance.dominant_band == "Bass"
    bass = next(e for e in balance.bands if e.band.name == "Bass")
    assert bass.percentage == 100.0
    assert balance.balance_score == 0.0


def test_balance_score_even_and_skewed():
    assert balance_score([25.0, 25.0, 25.0, 25.0]) == 100.0
    assert balance_score([100.0, 0.0, 0.0, 0.0]) == 0.0
    assert balance_score([]) == 0.0


def test_dominant_band_empty():
    assert dominant_band([]) == "Unknown"


def test_balance_recommendation_flags_low_mid_and_air():
    def energy(name, pct):
        return BandEnergy(FrequencyBand(name, 0, 1), -20.0, pct)

    text = balance_recommendation([energy("Low-Mid", 30.0), energy("Brilliance", 2.0)])
    assert "muddiness" in text
    assert "air and sparkle" in text
    assert balance_recommendation([energy("Mid", 40.0)]) == "Frequency balance appears reasonable."


def test_one_second_440hz_tone_balance():
    balance = analyze_frequency_balance(mono_buffer(sine(440.0)))
    assert balance.dominant_band in ("Low-Mid", "Mid")
    assert np.isclose(sum(e.percentage for e in balance.bands), 100.0, atol=0.5)
