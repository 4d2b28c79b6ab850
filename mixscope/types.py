from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import numpy as np

from mixscope.errors import InvalidInputError


class Severity(str, Enum):
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


SEVERITY_RANK = {
    Severity.SEVERE: 3,
    Severity.MODERATE: 2,
    Severity.MILD: 1,
    Severity.NONE: 0,
}


class ProblemType(str, Enum):
    MUDDY = "muddy"
    HARSH = "harsh"
    BOXY = "boxy"
    THIN = "thin"
    NASAL = "nasal"
    RUMBLE = "rumble"
    SIBILANT = "sibilant"


@dataclass(frozen=True)
class SampleBuffer:
    """Decoded PCM audio. Stereo samples are interleaved L,R,L,R."""
    samples: np.ndarray
    sample_rate: int
    channels: int = 1
    duration_ms: float = field(default=-1.0)

    def __post_init__(self):
        if self.channels not in (1, 2):
            raise InvalidInputError(f"channels must be 1 or 2 (got {self.channels}).")
        if self.sample_rate <= 0:
            raise InvalidInputError(f"sample_rate must be > 0 (got {self.sample_rate}).")
        x = np.asarray(self.samples, dtype=np.float64)
        if x.ndim != 1:
            raise InvalidInputError("samples must be a flat (interleaved) array.")
        if x.size % self.channels:
            raise InvalidInputError("interleaved sample count must be divisible by channels.")
        object.__setattr__(self, "samples", x)
        if self.duration_ms < 0:
            object.__setattr__(
                self, "duration_ms", self.frames_count / self.sample_rate * 1000.0
            )

    @classmethod
    def from_channels(cls, data: np.ndarray, sample_rate: int) -> "SampleBuffer":
        """Build from a (n,) or (n, channels) array."""
        x = np.asarray(data, dtype=np.float64)
        if x.ndim == 1:
            return cls(samples=x, sample_rate=int(sample_rate), channels=1)
        return cls(samples=x.reshape(-1), sample_rate=int(sample_rate), channels=int(x.shape[1]))

    @property
    def frames_count(self) -> int:
        return self.samples.size // self.channels

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000.0

    def channel(self, index: int) -> np.ndarray:
        if not 0 <= index < self.channels:
            raise InvalidInputError(f"channel index must be in [0, {self.channels - 1}].")
        return self.samples[index::self.channels]

    @property
    def left(self) -> np.ndarray:
        return self.channel(0)

    @property
    def right(self) -> np.ndarray:
        return self.channel(self.channels - 1)

    def as_matrix(self) -> np.ndarray:
        """Return samples shaped (frames, channels)."""
        return self.samples.reshape(-1, self.channels)

    def to_mono(self) -> np.ndarray:
        """Mean of the channels as a 1D array."""
        if self.channels == 1:
            return self.samples
        return np.mean(self.as_matrix(), axis=1)


@dataclass(frozen=True)
class SpectrogramData:
    magnitudes: np.ndarray
    frequencies: np.ndarray
    times: np.ndarray
    fft_size: int
    hop_size: int
    sample_rate: int

    @property
    def num_frames(self) -> int:
        return int(self.magnitudes.shape[0])

    @property
    def num_bins(self) -> int:
        return int(self.magnitudes.shape[1]) if self.magnitudes.ndim == 2 else 0


@dataclass(frozen=True)
class MelSpectrogramData:
    magnitudes: np.ndarray
    mel_frequencies: np.ndarray
    times: np.ndarray
    fft_size: int
    hop_size: int
    sample_rate: int
    num_mel_bands: int

    @property
    def num_frames(self) -> int:
        return int(self.magnitudes.shape[0])


@dataclass(frozen=True)
class FrequencyBand:
    name: str
    min_hz: float
    max_hz: float
    description: str = ""


@dataclass(frozen=True)
class BandEnergy:
    band: FrequencyBand
    energy_db: float
    percentage: float


@dataclass(frozen=True)
class FrequencyBalance:
    bands: tuple[BandEnergy, ...]
    dominant_band: str
    balance_score: float
    recommendation: str


@dataclass(frozen=True)
class AudioProblem:
    type: ProblemType
    detected: bool
    severity: Severity
    frequency_range: tuple[float, float]
    energy_db: float
    excess_percentage: float
    recommendation: str


@dataclass(frozen=True)
class RenderResult:
    image_path: str
    width: int
    height: int
    fft_size: int
    hop_size: int
    num_frames: int
    num_bins: int
    db_range: tuple[float, float]
    frequency_range: tuple[float, float]
    duration_seconds: float
    sample_rate: int


@dataclass(frozen=True)
class AnalysisConfig:
    sample_rate: int = 44100
    fft_size: int = 2048
    hop_size: int = 512
    num_mel_bands: int = 128
    num_mfcc: int = 13
    clipping_threshold: float = 0.99
    quiet_threshold_db: float = -40.0
    target_dynamic_range_db: float = 12.0
    transient_sensitivity: str = "medium"
    output_dir: str | None = None
