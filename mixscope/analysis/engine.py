"""Complete mix analysis: every analyzer on one buffer, plus a summary."""
from __future__ import annotations

import logging
import math
from typing import Callable

from mixscope.analysis.spectral import analyze_frequency_balance, analyze_spectrum, make_provider
from mixscope.dsp.features import SpectralFeatureProvider
from mixscope.metrics.clipping import detect_clipping
from mixscope.metrics.compression import assess_compression
from mixscope.metrics.eq_problems import detect_all_problems
from mixscope.metrics.loudness import analyze_loudness
from mixscope.metrics.masking import analyze_masking
from mixscope.metrics.noise import analyze_noise_floor
from mixscope.metrics.pumping import detect_pumping
from mixscope.metrics.sibilance import detect_sibilance
from mixscope.metrics.stereo import analyze_stereo_field
from mixscope.metrics.timbre import analyze_brightness, analyze_harshness
from mixscope.metrics.transients import detect_transients
from mixscope.types import AnalysisConfig, SampleBuffer, Severity

logger = logging.getLogger(__name__)

SOURCE_TYPES = ("vocal", "instrument", "drums", "bass", "full-mix", "unknown")
HOT_RMS_DB = -6.0
QUIET_RMS_DB = -20.0


class MixAnalyzer:
    """
    Runs the analyzers for one configuration.

    Each analyzer is called independently: an exception in one is recorded
    under "errors" keyed by analyzer name and the others still run. The
    summary only uses the results that are present.
    """

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        provider: SpectralFeatureProvider | None = None,
    ):
        self.config = config or AnalysisConfig()
        self.provider = provider

    def analyzers(self, buffer: SampleBuffer) -> dict[str, Callable[[], object]]:
        cfg = self.config
        provider = self.provider or make_provider(buffer.sample_rate, cfg)
        return {
            "loudness": lambda: analyze_loudness(buffer, cfg),
            "frequency_balance": lambda: analyze_frequency_balance(buffer, cfg),
            "spectrum": lambda: analyze_spectrum(buffer, cfg, provider),
            "brightness": lambda: analyze_brightness(buffer, cfg, provider),
            "harshness": lambda: analyze_harshness(buffer, cfg, provider),
            "masking": lambda: analyze_masking(buffer, cfg, provider),
            "eq_problems": lambda: detect_all_problems(buffer, cfg),
            "clipping": lambda: detect_clipping(buffer, cfg.clipping_threshold),
            "noise_floor": lambda: analyze_noise_floor(buffer, cfg.quiet_threshold_db),
            "transients": lambda: detect_transients(buffer, cfg.transient_sensitivity),
            "compression": lambda: assess_compression(buffer, cfg.target_dynamic_range_db),
            "sibilance": lambda: detect_sibilance(buffer, cfg),
            "pumping": lambda: detect_pumping(buffer),
            "stereo": lambda: analyze_stereo_field(buffer),
        }

    def run(self, buffer: SampleBuffer, names=None) -> tuple[dict, dict]:
        """Run the named analyzers (all by default); return (results, errors)."""
        table = self.analyzers(buffer)
        selected = list(table) if names is None else list(names)
        unknown = [n for n in selected if n not in table]
        if unknown:
            raise ValueError(f"Unknown analyzer(s): {', '.join(unknown)}.")
        results: dict = {}
        errors: dict = {}
        for name in selected:
            try:
                results[name] = table[name]()
            except Exception as exc:
                logger.warning("analyzer %s failed: %s", name, exc)
                logger.debug("analyzer %s traceback", name, exc_info=True)
                errors[name] = f"{type(exc).__name__}: {exc}"
        return results, errors

    def analyze_mix(self, buffer: SampleBuffer, source_type: str = "unknown") -> dict:
        if source_type not in SOURCE_TYPES:
            raise ValueError(f"source_type must be one of: {', '.join(SOURCE_TYPES)}.")
        logger.info(
            "analyzing %.1f ms of audio (%d Hz, %d ch)",
            buffer.duration_ms, buffer.sample_rate, buffer.channels,
        )
        results, errors = self.run(buffer)
        sections = build_sections(results, source_type)
        return {
            "source_type": source_type,
            "results": results,
            "errors": errors,
            "sections": sections,
            "summary": summarize(results),
        }

    def analyze_batch(self, buffers: dict[str, SampleBuffer], source_type: str = "unknown") -> dict:
        """analyze_mix for several named buffers."""
        return {name: self.analyze_mix(buf, source_type) for name, buf in buffers.items()}


def _detected_problems(results: dict) -> list:
    eq = results.get("eq_problems")
    if not eq:
        return []
    return [p for p in eq["problems"] if p.detected]


def build_sections(results: dict, source_type: str) -> dict:
    """Recommendations grouped by mixing stage."""
    loud = results.get("loudness")
    clip = results.get("clipping")
    noise = results.get("noise_floor")
    comp = results.get("compression")
    sib = results.get("sibilance")
    trans = results.get("transients")
    stereo = results.get("stereo")
    problems = _detected_problems(results)

    gain = []
    status = "UNKNOWN"
    if clip and clip["has_clipping"]:
        status = "CLIPPING"
        gain.append(f"Reduce input gain by {max(1, math.ceil(clip['peak_db']))}dB to eliminate clipping")
    elif loud and loud["rms_db"] > HOT_RMS_DB:
        status = "TOO HOT"
        gain.append("Reduce gain by 3-6dB to create headroom")
    elif loud and loud["rms_db"] < QUIET_RMS_DB:
        status = "TOO QUIET"
        gain.append("Increase gain to improve signal-to-noise ratio")
    elif loud:
        status = "OPTIMAL"
        gain.append("Gain staging is good")
    if noise and noise["suggest_gate"]:
        gain.append(f"Apply noise gate at {noise['gate_threshold_db']}dB")

    subtractive = []
    rumble = next((p for p in problems if p.type.value == "rumble"), None)
    if rumble is not None:
        subtractive.append(f"Apply HPF at 80-100Hz ({rumble.severity.value} rumble detected)")
    elif source_type == "vocal":
        subtractive.append("Apply HPF at 80-100Hz for vocals")
    for p in problems:
        if p.type.value in ("thin", "rumble"):
            continue
        centre = int(round(sum(p.frequency_range) / 2))
        amount = "4-6" if p.severity == Severity.SEVERE else "2-4"
        subtractive.append(f"Cut {amount}dB at {centre}Hz ({p.type.value})")

    dynamics = []
    if comp and comp["needs_compression"]:
        s = comp["suggested_settings"]
        dynamics.append(f"Apply {s['ratio']} compression at {s['threshold_db']}dB")
        dynamics.append(f"Use {s['attack_ms']}ms attack, {s['release_ms']}ms release")
    if sib and sib["has_sibilance"] and source_type in ("vocal", "unknown"):
        dynamics.append(
            f"Apply de-esser at {sib['peak_frequency_hz']:.0f}Hz ({sib['severity'].value} sibilance)"
        )
    if trans and trans["attack_character"] == "sharp":
        dynamics.append(
            "Consider fast compressor attack (1-5ms) or parallel compression for transient control"
        )

    additive = []
    if any(p.type.value == "thin" for p in problems):
        additive.append("Boost 100-200Hz by 2-4dB to add body")
    if source_type == "vocal":
        additive.append("Consider air boost above 10kHz for presence")
        additive.append("Presence boost at 3-5kHz can help vocals cut through")
    elif source_type == "drums":
        additive.append("Boost 60-100Hz for kick punch")
        additive.append("Boost 3-5kHz for snare crack")

    spatial = []
    if stereo:
        if stereo["phase"]["has_phase_issues"]:
            spatial.append("Check stereo processing - phase issues detected")
        if not stereo["balance"]["is_balanced"]:
            spatial.append(
                f"Adjust balance - currently {stereo['balance']['difference_db']}dB toward "
                f"{stereo['balance']['pan_direction']}"
            )
        if stereo["width"]["width_character"] in ("mono", "narrow"):
            spatial.append("Consider stereo widening, reverb, or delay for more width")
        if stereo["width"]["width_character"] == "very-wide":
            spatial.append("Consider narrowing stereo width for better mono compatibility")

    return {
        "gain_staging": {"status": status, "actions": gain},
        "subtractive_eq": {"detected": len(problems), "actions": subtractive},
        "dynamics": {"actions": dynamics},
        "additive_eq": {"actions": additive},
        "spatial": {"actions": spatial},
    }


def summarize(results: dict) -> dict:
    """Quality score (0-100), assessment and ordered priorities."""
    loud = results.get("loudness")
    clip = results.get("clipping")
    comp = results.get("compression")
    stereo = results.get("stereo")
    problems = _detected_problems(results)
    has_clipping = bool(clip and clip["has_clipping"])
    phase_issues = bool(stereo and stereo["phase"]["has_phase_issues"])

    score = 100
    if has_clipping:
        score -= 20
    if loud and (loud["rms_db"] > HOT_RMS_DB or loud["rms_db"] < QUIET_RMS_DB):
        score -= 10
    score -= 5 * len(problems)
    if phase_issues:
        score -= 10
    if stereo and not stereo["balance"]["is_balanced"]:
        score -= 5
    score = max(0, score)

    if score >= 80:
        assessment = "ready-for-mix"
    elif score >= 50:
        assessment = "needs-work"
    else:
        assessment = "significant-issues"

    priorities = []
    if has_clipping:
        priorities.append("Fix clipping first")
    if any(p.severity == Severity.SEVERE for p in problems):
        priorities.append("Address severe EQ problems")
    if comp and comp["compression_urgency"] == "essential":
        priorities.append("Apply compression for dynamics control")
    if phase_issues:
        priorities.append("Fix phase issues")
    return {
        "overall_assessment": assessment,
        "quality_score": score,
        "prioritized_recommendations": priorities,
    }
