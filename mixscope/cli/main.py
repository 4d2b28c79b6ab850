"""MixScope CLI - mix analysis and spectrogram rendering."""
from __future__ import annotations
import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from mixscope.version import __version__
from mixscope.analysis.bands import CATALOGUES
from mixscope.analysis.engine import SOURCE_TYPES, MixAnalyzer
from mixscope.analysis.spectral import (
    SPECTROGRAM_FFT_SIZES,
    analyze_frequency_balance,
    compute_mel_spectrogram,
    spectrogram_with_config,
)
from mixscope.config.loader import load_config
from mixscope.errors import CaptureError, DecodeError, InvalidInputError, ParameterError
from mixscope.io.audio import decode_audio
from mixscope.io.capture import CaptureConfig, CaptureService
from mixscope.metrics.eq_problems import detect_all_problems, detect_problem
from mixscope.render.charts import (
    ChartOptions,
    render_frequency_balance,
    render_mel_spectrogram,
    render_waveform,
)
from mixscope.render.colormaps import COLORMAP_NAMES
from mixscope.render.spectrogram import FREQUENCY_SCALES, SpectrogramRenderer, SpectrogramRenderOptions
from mixscope.reporting.report import build_report
from mixscope.types import AnalysisConfig, ProblemType
from mixscope.utils.canonical_json import to_jsonable
from mixscope.utils.hashing import sha256_hex_file

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BAD_ARGS = 2
EXIT_DECODE_ERROR = 3
EXIT_CONFIG_ERROR = 4
EXIT_INTERNAL_ERROR = 5
EXIT_CAPTURE_ERROR = 6

DYNAMICS_ANALYZERS = (
    "loudness",
    "clipping",
    "noise_floor",
    "transients",
    "compression",
    "sibilance",
    "pumping",
)
CHART_KINDS = ("stft", "mel", "waveform", "balance")


def _error_exit(e: Exception) -> int:
    """Print an error for `e` and return the matching exit code."""
    if isinstance(e, FileNotFoundError):
        print(f"Error: File not found - {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    if isinstance(e, ParameterError):
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_ARGS
    if isinstance(e, (DecodeError, InvalidInputError)):
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    if isinstance(e, CaptureError):
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CAPTURE_ERROR
    logger.debug("unhandled error", exc_info=True)
    print(f"Internal error: {e}", file=sys.stderr)
    return EXIT_INTERNAL_ERROR


def _load_config(path: str | None) -> AnalysisConfig:
    return load_config(path) if path else AnalysisConfig()


def _build_input_meta(audio_path: str, decoded) -> dict:
    buf = decoded.buffer
    return {
        "path": str(Path(audio_path).resolve()),
        "file_hash_sha256": sha256_hex_file(audio_path),
        "sample_rate": buf.sample_rate,
        "channels": buf.channels,
        "source_channels": decoded.source_channels,
        "duration_ms": buf.duration_ms,
        "decode_backend": decoded.backend,
        "decode_warnings": list(decoded.warnings),
    }


def _emit(report: dict, out: str | None) -> None:
    output_json = json.dumps(report, indent=2)
    if out:
        Path(out).parent.mkdir(parents=True, exist_ok=True)
        Path(out).write_text(output_json, encoding="utf-8")
        print(f"Report written to: {out}", file=sys.stderr)
    else:
        print(output_json)


def _now_utc() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _report_for(kind: str, result, audio_path: str, decoded, cfg: AnalysisConfig) -> dict:
    return build_report(
        to_jsonable(result),
        _build_input_meta(audio_path, decoded),
        kind=kind,
        config=to_jsonable(cfg),
        created_utc=_now_utc(),
    )


def _with_config(args, body) -> int:
    """Load --config, then run body(cfg) mapping failures to exit codes."""
    try:
        cfg = _load_config(getattr(args, "config", None))
    except FileNotFoundError as e:
        print(f"Error: Config not found - {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except ValueError as e:
        print(f"Error: Invalid config - {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    try:
        return body(cfg)
    except Exception as e:
        return _error_exit(e)


def cmd_analyze(args) -> int:
    """Complete mix analysis of one or more files."""
    def body(cfg: AnalysisConfig) -> int:
        analyzer = MixAnalyzer(cfg)
        reports = {}
        failed = 0
        for audio_path in args.audio_paths:
            try:
                decoded = decode_audio(audio_path)
            except (FileNotFoundError, DecodeError) as e:
                if len(args.audio_paths) == 1:
                    raise
                print(f"[ERROR] {audio_path}: {e}", file=sys.stderr)
                failed += 1
                continue
            result = analyzer.analyze_mix(decoded.buffer, args.source_type)
            reports[audio_path] = _report_for("mix_analysis", result, audio_path, decoded, cfg)
            if len(args.audio_paths) > 1:
                summary = result["summary"]
                print(
                    f"[OK] {audio_path}: {summary['overall_assessment']} "
                    f"({summary['quality_score']}/100)",
                    file=sys.stderr,
                )
        if len(args.audio_paths) == 1:
            _emit(next(iter(reports.values())), args.out)
        else:
            _emit({"reports": reports, "failed": failed}, args.out)
        return EXIT_DECODE_ERROR if failed and not reports else EXIT_OK

    return _with_config(args, body)


def _chart_options(args, cfg: AnalysisConfig) -> ChartOptions:
    return ChartOptions(
        width=args.width,
        height=args.height,
        colormap=args.colormap or "magma",
        output_path=args.out or cfg.output_dir,
    )


def cmd_spectrogram(args) -> int:
    """Render a spectrogram (or auxiliary chart) to PNG."""
    def body(cfg: AnalysisConfig) -> int:
        buffer = decode_audio(args.audio_path).buffer
        if args.kind == "stft":
            spec = spectrogram_with_config(buffer, args.fft_size, args.hop_fraction)
            opts = SpectrogramRenderOptions(
                width=args.width or 1920,
                height=args.height or 1080,
                colormap=args.colormap or "viridis",
                frequency_scale=args.scale,
                min_db=args.min_db,
                max_db=args.max_db,
                min_frequency_hz=args.min_freq,
                max_frequency_hz=args.max_freq,
                show_frequency_grid=not args.no_grid,
                show_time_grid=not args.no_grid,
                show_colorbar=not args.no_colorbar,
                show_title=not args.no_title,
                title=args.title,
                output_path=args.out or cfg.output_dir,
            )
            result = SpectrogramRenderer().render(spec, opts)
            print(json.dumps(to_jsonable(result), indent=2))
            return EXIT_OK
        opts = _chart_options(args, cfg)
        if args.kind == "mel":
            path = render_mel_spectrogram(compute_mel_spectrogram(buffer, cfg), opts)
        elif args.kind == "waveform":
            path = render_waveform(buffer, opts)
        else:
            path = render_frequency_balance(analyze_frequency_balance(buffer, cfg), opts)
        print(str(path))
        return EXIT_OK

    return _with_config(args, body)


def cmd_balance(args) -> int:
    """Frequency band balance."""
    def body(cfg: AnalysisConfig) -> int:
        decoded = decode_audio(args.audio_path)
        result = analyze_frequency_balance(decoded.buffer, cfg, catalogue=args.catalogue)
        _emit(_report_for("frequency_balance", result, args.audio_path, decoded, cfg), args.out)
        return EXIT_OK

    return _with_config(args, body)


def cmd_problems(args) -> int:
    """EQ problem detection (all problems, or one with --problem)."""
    def body(cfg: AnalysisConfig) -> int:
        decoded = decode_audio(args.audio_path)
        if args.problem:
            result = detect_problem(decoded.buffer, args.problem, cfg)
        else:
            result = detect_all_problems(decoded.buffer, cfg)
        _emit(_report_for("eq_problems", result, args.audio_path, decoded, cfg), args.out)
        return EXIT_OK

    return _with_config(args, body)


def _run_group(args, kind: str, names) -> int:
    def body(cfg: AnalysisConfig) -> int:
        decoded = decode_audio(args.audio_path)
        results, errors = MixAnalyzer(cfg).run(decoded.buffer, names)
        result = {"results": results, "errors": errors}
        _emit(_report_for(kind, result, args.audio_path, decoded, cfg), args.out)
        return EXIT_INTERNAL_ERROR if errors and not results else EXIT_OK

    return _with_config(args, body)


def cmd_dynamics(args) -> int:
    """Loudness, clipping, noise, transients, compression, sibilance and pumping."""
    return _run_group(args, "dynamics", DYNAMICS_ANALYZERS)


def cmd_stereo(args) -> int:
    """Stereo width, balance and phase."""
    return _run_group(args, "stereo", ("stereo",))


def cmd_devices(args) -> int:
    """List capture devices."""
    try:
        devices = CaptureService().list_devices(include_loopback=not args.no_loopback)
    except Exception as e:
        return _error_exit(e)
    if args.json:
        print(json.dumps(to_jsonable(devices), indent=2))
        return EXIT_OK
    if not devices:
        print("No audio input devices found.")
    for d in devices:
        flag = " [loopback]" if d.is_loopback else ""
        print(f"  {d.id}: {d.name} ({d.host_api}){flag}")
    return EXIT_OK


def cmd_record(args) -> int:
    """Record from a capture device to WAV."""
    device = int(args.device) if args.device and args.device.isdigit() else args.device
    service = CaptureService(CaptureConfig(args.sample_rate, args.channels, device))
    try:
        info = service.record_to_file(args.out, args.duration)
    except Exception as e:
        return _error_exit(e)
    print(json.dumps(info, indent=2))
    return EXIT_OK


def _add_common(p: argparse.ArgumentParser, *, out_help: str = "Output path for report JSON") -> None:
    p.add_argument("--config", "-c", help="Path to analysis config JSON")
    p.add_argument("--out", "-o", help=out_help)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mixscope",
        description="MixScope - audio mix analysis and spectrogram rendering"
    )
    parser.add_argument(
        "--version", action="version",
        version=f"mixscope {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Complete mix analysis with prioritized recommendations"
    )
    analyze_parser.add_argument("audio_paths", nargs="+", help="Audio file(s) to analyze")
    analyze_parser.add_argument(
        "--source-type", "-s",
        choices=SOURCE_TYPES,
        default="unknown",
        help="What the audio contains (default: unknown)"
    )
    _add_common(analyze_parser)
    analyze_parser.set_defaults(func=cmd_analyze)

    spec_parser = subparsers.add_parser("spectrogram", help="Render a spectrogram PNG")
    spec_parser.add_argument("audio_path", help="Path to audio file")
    spec_parser.add_argument("--kind", choices=CHART_KINDS, default="stft", help="Chart type (default: stft)")
    spec_parser.add_argument("--fft-size", type=int, choices=SPECTROGRAM_FFT_SIZES, default=4096)
    spec_parser.add_argument("--hop-fraction", type=float, default=0.25)
    spec_parser.add_argument("--width", type=int)
    spec_parser.add_argument("--height", type=int)
    spec_parser.add_argument("--colormap", choices=COLORMAP_NAMES)
    spec_parser.add_argument("--scale", choices=FREQUENCY_SCALES, default="logarithmic")
    spec_parser.add_argument("--min-db", type=float, default=-90.0)
    spec_parser.add_argument("--max-db", type=float, default=0.0)
    spec_parser.add_argument("--min-freq", type=float, default=20.0)
    spec_parser.add_argument("--max-freq", type=float)
    spec_parser.add_argument("--title", default="Spectrogram")
    spec_parser.add_argument("--no-grid", action="store_true")
    spec_parser.add_argument("--no-colorbar", action="store_true")
    spec_parser.add_argument("--no-title", action="store_true")
    _add_common(spec_parser, out_help="Output PNG path or directory")
    spec_parser.set_defaults(func=cmd_spectrogram)

    balance_parser = subparsers.add_parser("balance", help="Frequency band balance")
    balance_parser.add_argument("audio_path", help="Path to audio file")
    balance_parser.add_argument("--catalogue", choices=tuple(CATALOGUES), default="standard")
    _add_common(balance_parser)
    balance_parser.set_defaults(func=cmd_balance)

    problems_parser = subparsers.add_parser("problems", help="Detect EQ problems")
    problems_parser.add_argument("audio_path", help="Path to audio file")
    problems_parser.add_argument("--problem", choices=[p.value for p in ProblemType])
    _add_common(problems_parser)
    problems_parser.set_defaults(func=cmd_problems)

    dynamics_parser = subparsers.add_parser("dynamics", help="Dynamics and level analysis")
    dynamics_parser.add_argument("audio_path", help="Path to audio file")
    _add_common(dynamics_parser)
    dynamics_parser.set_defaults(func=cmd_dynamics)

    stereo_parser = subparsers.add_parser("stereo", help="Stereo field analysis")
    stereo_parser.add_argument("audio_path", help="Path to audio file")
    _add_common(stereo_parser)
    stereo_parser.set_defaults(func=cmd_stereo)

    devices_parser = subparsers.add_parser("devices", help="List capture devices")
    devices_parser.add_argument("--no-loopback", action="store_true", help="Hide loopback devices")
    devices_parser.add_argument("--json", action="store_true", help="Print JSON")
    devices_parser.set_defaults(func=cmd_devices)

    record_parser = subparsers.add_parser("record", help="Record from a capture device to WAV")
    record_parser.add_argument("--duration", "-d", type=float, required=True, help="Seconds (max 300)")
    record_parser.add_argument("--device", help="Device id or name substring")
    record_parser.add_argument("--sample-rate", type=int, default=44100)
    record_parser.add_argument("--channels", type=int, choices=(1, 2), default=2)
    record_parser.add_argument("--out", "-o", required=True, help="Output WAV path")
    record_parser.set_defaults(func=cmd_record)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if hasattr(args, "func"):
        sys.exit(args.func(args))
    else:
        parser.print_help()
        sys.exit(EXIT_BAD_ARGS)


if __name__ == "__main__":
    main()
