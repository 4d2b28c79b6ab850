from __future__ import annotations

import json

import numpy as np
import pytest
import soundfile as sf

from mixscope.cli.main import (
    EXIT_BAD_ARGS,
    EXIT_CONFIG_ERROR,
    EXIT_DECODE_ERROR,
    EXIT_OK,
    build_parser,
    main,
)
from mixscope.reporting.report import verify_report
from tests.conftest import build_config_dict, sine, write_config


def _write_tone(tmp_path, name: str = "tone.wav", seconds: float = 1.0) -> str:
    x = sine(440.0, seconds, amp=0.5)
    path = tmp_path / name
    sf.write(path, np.column_stack([x, x * 0.9]), 44100)
    return str(path)


def _run(argv) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def test_parser_defaults():
    args = build_parser().parse_args(["analyze", "a.wav", "b.wav"])
    assert args.audio_paths == ["a.wav", "b.wav"]
    assert args.source_type == "unknown"
    args = build_parser().parse_args(["spectrogram", "a.wav"])
    assert args.kind == "stft"
    assert args.fft_size == 4096
    assert args.scale == "logarithmic"


def test_parser_rejects_bad_choice():
    assert _run(["spectrogram", "a.wav", "--fft-size", "1000"]) == EXIT_BAD_ARGS


def test_analyze_prints_verified_report(tmp_path, capsys):
    path = _write_tone(tmp_path)
    assert _run(["analyze", path, "--source-type", "vocal"]) == EXIT_OK
    report = json.loads(capsys.readouterr().out)
    assert report["kind"] == "mix_analysis"
    assert report["input"]["channels"] == 2
    assert report["result"]["source_type"] == "vocal"
    assert report["result"]["errors"] == {}
    assert verify_report(report)


def test_analyze_batch_tolerates_missing_file(tmp_path, capsys):
    good = _write_tone(tmp_path, seconds=0.5)
    out = tmp_path / "reports" / "batch.json"
    code = _run(["analyze", good, str(tmp_path / "missing.wav"), "--out", str(out)])
    assert code == EXIT_OK
    batch = json.loads(out.read_text(encoding="utf-8"))
    assert batch["failed"] == 1
    assert list(batch["reports"]) == [good]
    assert "[ERROR]" in capsys.readouterr().err


def test_analyze_missing_file_exit_code(tmp_path):
    assert _run(["analyze", str(tmp_path / "missing.wav")]) == EXIT_DECODE_ERROR


def test_invalid_config_exit_code(tmp_path, capsys):
    path = _write_tone(tmp_path)
    cfg = write_config(tmp_path, build_config_dict(analysis={"fft_size": 1000}))
    assert _run(["dynamics", path, "--config", str(cfg)]) == EXIT_CONFIG_ERROR
    assert "Invalid config" in capsys.readouterr().err


def test_spectrogram_command_writes_png(tmp_path, capsys):
    path = _write_tone(tmp_path)
    out_dir = tmp_path / "renders"
    code = _run([
        "spectrogram", path,
        "--width", "800", "--height", "400",
        "--fft-size", "2048",
        "--out", str(out_dir) + "/",
    ])
    assert code == EXIT_OK
    result = json.loads(capsys.readouterr().out)
    assert result["width"] == 800
    assert result["fft_size"] == 2048
    assert result["hop_size"] == 512
    pngs = list(out_dir.glob("spectrogram-*.png"))
    assert len(pngs) == 1


def test_spectrogram_bad_render_option_exit_code(tmp_path):
    path = _write_tone(tmp_path)
    code = _run(["spectrogram", path, "--width", "100", "--out", str(tmp_path)])
    assert code == EXIT_BAD_ARGS


def test_waveform_chart_command(tmp_path, capsys):
    path = _write_tone(tmp_path, seconds=0.25)
    target = tmp_path / "wave.png"
    assert _run(["spectrogram", path, "--kind", "waveform", "--out", str(target)]) == EXIT_OK
    assert capsys.readouterr().out.strip() == str(target.resolve())
    assert target.exists()


def test_problems_and_stereo_reports(tmp_path, capsys):
    path = _write_tone(tmp_path)
    assert _run(["problems", path, "--problem", "muddy"]) == EXIT_OK
    report = json.loads(capsys.readouterr().out)
    assert report["kind"] == "eq_problems"
    assert report["result"]["type"] == "muddy"

    assert _run(["stereo", path]) == EXIT_OK
    report = json.loads(capsys.readouterr().out)
    assert report["result"]["results"]["stereo"]["is_stereo"] is True
    assert report["result"]["errors"] == {}


def test_balance_command_with_config(tmp_path, capsys):
    path = _write_tone(tmp_path)
    cfg = write_config(tmp_path, build_config_dict(analysis={"fft_size": 4096, "hop_size": 1024}))
    assert _run(["balance", path, "--catalogue", "simple", "--config", str(cfg)]) == EXIT_OK
    report = json.loads(capsys.readouterr().out)
    assert report["config"]["fft_size"] == 4096
    assert [b["band"]["name"] for b in report["result"]["bands"]] == ["Bass", "Mid", "Treble"]
