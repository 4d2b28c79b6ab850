from __future__ import annotations
import numpy as np

from mixscope.dsp.signal import power_to_db
from mixscope.types import BandEnergy, FrequencyBalance, FrequencyBand
from mixscope.utils.quantize import q

STANDARD_BANDS: tuple[FrequencyBand, ...] = (
    FrequencyBand("Sub-Bass", 20, 60, "Deep bass, felt more than heard. Kick drum sub, bass synth fundamentals."),
    FrequencyBand("Bass", 60, 250, "Bass guitar, kick drum body, low vocals, warmth."),
    FrequencyBand("Low-Mid", 250, 500, "Muddiness zone. Low end of vocals, snare body."),
    FrequencyBand("Mid", 500, 2000, "Vocal presence, guitar body, most instrument fundamentals."),
    FrequencyBand("High-Mid", 2000, 4000, "Presence, clarity, attack. Can be harsh if overemphasized."),
    FrequencyBand("Presence", 4000, 6000, "Definition, consonants, pick attack."),
    FrequencyBand("Brilliance", 6000, 20000, "Air, sparkle, cymbal shimmer, sibilance."),
)

SIMPLE_BANDS: tuple[FrequencyBand, ...] = (
    FrequencyBand("Bass", 20, 250, "Low frequencies"),
    FrequencyBand("Mid", 250, 4000, "Middle frequencies"),
    FrequencyBand("Treble", 4000, 20000, "High frequencies"),
)

PROBLEM_BANDS: dict[str, FrequencyBand] = {
    "rumble": FrequencyBand("Rumble", 20, 80, "Unwanted low-frequency rumble and noise"),
    "muddy": FrequencyBand("Mud", 200, 400, "Muddy frequencies that can obscure clarity"),
    "boxy": FrequencyBand("Boxiness", 400, 800, "Boxy, cardboard-like frequencies"),
    "nasal": FrequencyBand("Nasal", 800, 1500, "Nasal, honky frequencies"),
    "harsh": FrequencyBand("Harsh", 2500, 4000, "Harsh, fatiguing frequencies"),
    "sibilant": FrequencyBand("Sibilance", 5000, 8000, "Sibilant S and T sounds"),
}

CATALOGUES = {
    "standard": STANDARD_BANDS,
    "simple": SIMPLE_BANDS,
}


def band_mask(freqs: np.ndarray, band: FrequencyBand) -> np.ndarray:
    """Return boolean mask for frequencies within a band."""
    return (freqs >= band.min_hz) & (freqs < band.max_hz)


def bin_frequencies(num_bins: int, sample_rate: float, fft_size: int) -> np.ndarray:
    return np.arange(num_bins, dtype=np.float64) * float(sample_rate) / fft_size


def band_energy(
    spectrum: np.ndarray,
    band: FrequencyBand,
    sample_rate: float,
    fft_size: int,
) -> float:
    """Sum of squared magnitudes of bins whose centre lies in the band."""
    s = np.asarray(spectrum, dtype=np.float64)
    freqs = bin_frequencies(s.size, sample_rate, fft_size)
    return float(np.sum(s[band_mask(freqs, band)] ** 2))


def band_energies(
    spectrum: np.ndarray,
    sample_rate: float,
    fft_size: int,
    bands=STANDARD_BANDS,
    *,
    relative_to: str = "spectrum",
) -> list[BandEnergy]:
    """
    Per-band energy and share of a magnitude spectrum.

    Args:
        spectrum: Magnitude spectrum (fft_size // 2 bins)
        sample_rate: Sample rate in Hz
        fft_size: FFT size the spectrum was computed with
        bands: Band catalogue
        relative_to: "spectrum" expresses percentages against the energy of
            all bins, "bands" against the summed energy of the given bands

    Returns:
        Unrounded BandEnergy list in catalogue order.
    """
    s = np.asarray(spectrum, dtype=np.float64)
    energies = [band_energy(s, b, sample_rate, fft_size) for b in bands]
    if relative_to == "spectrum":
        total = float(np.sum(s ** 2))
    elif relative_to == "bands":
        total = float(sum(energies))
    else:
        raise ValueError("relative_to must be 'spectrum' or 'bands'.")
    out = []
    for b, e in zip(bands, energies):
        pct = e / total * 100.0 if total > 0 else 0.0
        out.append(BandEnergy(band=b, energy_db=power_to_db(e), percentage=pct))
    return out


def balance_score(percentages) -> float:
    """
    0-100 score of how evenly energy is spread across bands.

    100 when every band holds 100/n percent; the mean absolute deviation
    from that share is subtracted as a fraction of the share itself.
    """
    p = np.asarray(list(percentages), dtype=np.float64)
    if p.size == 0:
        return 0.0
    ideal = 100.0 / p.size
    avg_dev = float(np.mean(np.abs(p - ideal)))
    return float(q(max(0.0, 100.0 - avg_dev / ideal * 100.0), 1.0))


def dominant_band(energies: list[BandEnergy]) -> str:
    if not energies:
        return "Unknown"
    best = energies[0]
    for e in energies[1:]:
        if e.percentage > best.percentage:
            best = e
    return best.band.name


def balance_recommendation(energies: list[BandEnergy]) -> str:
    recs = []
    for e in energies:
        name, pct = e.band.name, e.percentage
        if name == "Sub-Bass" and pct > 25:
            recs.append("Consider high-pass filtering to reduce excessive sub-bass.")
        if name == "Low-Mid" and pct > 20:
            recs.append("Low-mids may be causing muddiness. Consider cutting 250-500 Hz.")
        if name == "High-Mid" and pct > 25:
            recs.append("High-mids may cause listener fatigue. Consider gentle reduction around 2-4 kHz.")
        if name == "Brilliance" and pct < 5:
            recs.append("Mix may lack air and sparkle. Consider boosting high frequencies.")
    if not recs:
        return "Frequency balance appears reasonable."
    return " ".join(recs)


def frequency_balance(
    spectrum: np.ndarray,
    sample_rate: float,
    fft_size: int,
    bands=STANDARD_BANDS,
) -> FrequencyBalance:
    """Band shares of the catalogue's total energy, rounded to 0.1."""
    raw = band_energies(spectrum, sample_rate, fft_size, bands, relative_to="bands")
    rounded = tuple(
        BandEnergy(band=e.band, energy_db=q(e.energy_db, 0.1), percentage=q(e.percentage, 0.1))
        for e in raw
    )
    return FrequencyBalance(
        bands=rounded,
        dominant_band=dominant_band(raw),
        balance_score=balance_score(e.percentage for e in rounded),
        recommendation=balance_recommendation(list(rounded)),
    )
