#!/usr/bin/env python3
"""ABOUTME: Tests for telemetry rendering and parameter panel text.
ABOUTME: Pure rendering helpers only; no running Textual app."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from components.parameter_panel import chain_lines, format_slider, parameter_lines
from components.visualizer import LEVELS, render_spectrum, render_waveform
from control.registry import Param
from control.state import StateSnapshot


def test_silent_spectrum_is_blank():
    rows = render_spectrum([0.0] * 8, width=16, height=3).split("\n")
    assert len(rows) == 3
    assert all(set(row) == {" "} for row in rows)


def test_full_band_fills_every_row():
    rows = render_spectrum([1.0] + [0.0] * 7, width=16, height=2).split("\n")
    assert rows[0].startswith(LEVELS[-1] * 2)
    assert rows[1].startswith(LEVELS[-1] * 2)
    assert rows[1][2:].strip() == ""


def test_spectrum_survives_bad_values():
    out = render_spectrum([float("nan"), 5.0, -1.0] + [0.5] * 5, width=8, height=2)
    assert len(out.split("\n")) == 2


def test_waveform_has_one_point_per_column():
    rows = render_waveform([0.0] * 64, width=32, height=7).split("\n")
    assert len(rows) == 7
    assert rows[3] == "•" * 32
    assert all(row.strip() == "" for i, row in enumerate(rows) if i != 3)


def test_waveform_extremes_hit_top_and_bottom():
    samples = [1.0] * 32 + [-1.0] * 32
    rows = render_waveform(samples, width=8, height=5).split("\n")
    assert rows[0].startswith("••••")
    assert rows[-1].endswith("••••")


def test_slider_width_and_fill():
    assert format_slider(0.5, 10) == "█████░░░░░"
    assert format_slider(2.0, 4) == "████"


def test_parameter_lines_mark_focus_and_pending():
    lines = parameter_lines(StateSnapshot(), "input", focused=1, pending=[Param.GAIN])
    assert lines[0].startswith(" *Gain")
    assert lines[1].startswith("> Loop Length")
    assert lines[2].endswith("[ ]")


def test_chain_lines_number_effects():
    lines = chain_lines(("filter", "delay"), selected=1)
    assert lines == ["  1. filter", "> 2. delay"]
