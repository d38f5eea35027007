"""Spectrum and waveform display fed by engine telemetry."""
from typing import Sequence

import numpy as np
from rich.text import Text
from textual.widgets import Static

LEVELS = " ▁▂▃▄▅▆▇█"


def render_spectrum(spectrum: Sequence[float], width: int = 48, height: int = 4) -> str:
    """Render band magnitudes (0..1) as vertical bars, top line first."""
    bands = np.clip(np.nan_to_num(np.asarray(spectrum, dtype=np.float32)), 0.0, 1.0)
    if bands.size == 0 or width <= 0 or height <= 0:
        return ""
    bar_width = max(1, width // bands.size)
    steps = len(LEVELS) - 1
    # Total filled eighths per band across all rows
    filled = np.round(bands * height * steps).astype(int)

    rows = []
    for row in range(height - 1, -1, -1):
        cells = []
        for amount in filled:
            level = int(np.clip(amount - row * steps, 0, steps))
            cells.append(LEVELS[level] * bar_width)
        rows.append("".join(cells))
    return "\n".join(rows)


def render_waveform(waveform: Sequence[float], width: int = 48, height: int = 7) -> str:
    """Render samples in -1..1 as an oscilloscope trace."""
    samples = np.clip(np.nan_to_num(np.asarray(waveform, dtype=np.float32)), -1.0, 1.0)
    if samples.size == 0 or width <= 0 or height <= 0:
        return ""
    positions = np.linspace(0, samples.size - 1, num=width)
    resampled = np.interp(positions, np.arange(samples.size), samples)
    ys = np.round((resampled + 1.0) / 2.0 * (height - 1)).astype(int)

    grid = [[" "] * width for _ in range(height)]
    for x, y in enumerate(ys):
        grid[height - 1 - y][x] = "•"
    return "\n".join("".join(row) for row in grid)


class Visualizer(Static):
    """Shows the latest spectrum and waveform telemetry."""

    DEFAULT_CSS = """
    Visualizer {
        width: 100%;
        height: auto;
        border: solid $accent;
        padding: 0 1;
    }
    """

    def __init__(self, width: int = 48, **kwargs):
        super().__init__("", **kwargs)
        self.plot_width = width

    def show(self, spectrum: Sequence[float], waveform: Sequence[float]):
        text = Text()
        text.append("Spectrum\n", style="bold #ffd700")
        text.append(render_spectrum(spectrum, self.plot_width) + "\n", style="#ff5fd7")
        text.append("Waveform\n", style="bold #ffd700")
        text.append(render_waveform(waveform, self.plot_width), style="#ff5fd7")
        self.update(text)
