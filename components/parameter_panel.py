"""Effect sections sidebar and parameter list for the focused section."""
from typing import Iterable, List, Optional

from rich.text import Text
from textual.widgets import Static

from control.registry import (
    BLEND_MODE_NAMES,
    SECTIONS,
    Kind,
    Param,
    params_in_section,
    spec_for,
    to_normalized,
)
from control.state import StateSnapshot

CHAIN_SECTION = "chain"
ALL_SECTIONS = SECTIONS + (CHAIN_SECTION,)

# Switch that lights each section up in the sidebar
SECTION_SWITCHES = {
    "input": Param.INPUT_FREEZE,
    "filter": Param.FILTER_ENABLED,
    "overdrive": Param.OVERDRIVE_ENABLED,
    "bitcrush": Param.BITCRUSH_ENABLED,
    "granular": Param.GRANULAR_ENABLED,
    "reverb": Param.REVERB_ENABLED,
    "delay": Param.DELAY_ENABLED,
}


def format_slider(fraction: float, width: int = 20) -> str:
    filled = int(round(max(0.0, min(1.0, fraction)) * width))
    return "█" * filled + "░" * (width - filled)


def format_value(param: Param, value) -> str:
    spec = spec_for(param)
    if spec.kind == Kind.BOOL:
        return "[X]" if value else "[ ]"
    if param == Param.BLEND_MODE:
        return BLEND_MODE_NAMES[value] if 0 <= value < len(BLEND_MODE_NAMES) else str(value)
    if spec.kind == Kind.STRING:
        return str(value)
    if spec.maximum >= 1000:
        return f"{value:.0f}"
    return f"{value:.2f}"


def parameter_lines(state: StateSnapshot, section: str, focused: int,
                    pending: Iterable[Param] = (), slider_width: int = 20) -> List[str]:
    """Plain-text rows for a section; the focused row is marked with '>'."""
    pending = set(pending)
    lines = []
    for index, param in enumerate(params_in_section(section)):
        spec = spec_for(param)
        value = state.get(param)
        marker = ">" if index == focused else " "
        flag = "*" if param in pending else " "
        if spec.kind == Kind.FLOAT:
            slider = format_slider(to_normalized(param, value), slider_width)
            lines.append(f"{marker}{flag}{spec.label:<18} {slider} {format_value(param, value)}")
        else:
            lines.append(f"{marker}{flag}{spec.label:<18} {format_value(param, value)}")
    return lines


def chain_lines(order: Iterable[str], selected: int) -> List[str]:
    return [f"{'>' if i == selected else ' '} {i + 1}. {name}"
            for i, name in enumerate(order)]


class SectionSidebar(Static):
    """List of effect sections with their enabled state."""

    DEFAULT_CSS = """
    SectionSidebar {
        width: 22;
        height: auto;
        border: solid #ffd700;
        padding: 0 1;
    }
    """

    def show(self, state: StateSnapshot, current: str):
        text = Text()
        for section in ALL_SECTIONS:
            switch = SECTION_SWITCHES.get(section)
            status = ""
            if switch is not None:
                status = " ●" if state.get(switch) else " ○"
            style = "bold reverse #ffd700" if section == current else ""
            text.append(f"{section.title():<12}{status}\n", style=style)
        self.update(text)


class ParameterPanel(Static):
    """Parameters of the focused section, or the effects chain."""

    DEFAULT_CSS = """
    ParameterPanel {
        width: 1fr;
        height: auto;
        border: solid $accent;
        padding: 0 1;
    }
    """

    def show(self, state: StateSnapshot, section: str, focused: int,
             pending: Optional[Iterable[Param]] = None, selected_effect: int = 0):
        text = Text()
        text.append(f"{section.title()}\n", style="bold #ffd700")
        if section == CHAIN_SECTION:
            lines = chain_lines(state.effects_order, selected_effect)
            text.append("\n".join(lines))
            text.append("\n\n[ / ]: move  r: reset", style="italic #888888")
        else:
            lines = parameter_lines(state, section, focused, pending or ())
            for line in lines:
                style = "bold" if line.startswith(">") else ""
                text.append(line + "\n", style=style)
        self.update(text)
