"""Exception types raised by MixScope."""
from __future__ import annotations


class MixScopeError(Exception):
    """Base class for MixScope errors."""


class InvalidInputError(MixScopeError, ValueError):
    """Input data cannot be processed (e.g. an empty spectrogram)."""


class ParameterError(MixScopeError, ValueError):
    """A parameter is outside its valid range."""


class CaptureError(MixScopeError, RuntimeError):
    """The external recorder failed or produced no audio."""


class DecodeError(MixScopeError, ValueError):
    """An audio file could not be decoded by any backend."""


def check_range(name: str, value: float, low: float, high: float) -> float:
    """Raise ParameterError unless low <= value <= high."""
    if value is None or not (low <= value <= high):
        raise ParameterError(f"{name} must be between {low} and {high} (got {value}).")
    return value


def check_choice(name: str, value, choices) -> None:
    """Raise ParameterError unless value is one of choices."""
    if value not in choices:
        allowed = ", ".join(str(c) for c in choices)
        raise ParameterError(f"{name} must be one of: {allowed} (got {value}).")
