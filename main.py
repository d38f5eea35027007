#!/usr/bin/env python3
"""Chroma control surface TUI - Main Entry Point."""
import argparse
import logging
import sys
from typing import Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer

from components.header_widget import HeaderWidget
from components.parameter_panel import (
    ALL_SECTIONS,
    CHAIN_SECTION,
    ParameterPanel,
    SectionSidebar,
)
from components.visualizer import Visualizer
from config_manager import ConfigManager
from control.engine import ReconciliationEngine
from control.registry import Kind, Param, params_in_section, spec_for
from control.state import StateSnapshot
from logging_config import setup_logging
from midi.device_manager import MIDIDeviceManager
from midi.input_handler import MIDIInputHandler
from osc.client import OscSender
from osc.server import OscReceiver

logger = logging.getLogger(__name__)

ADJUST_STEP = 0.05
TICK_SECONDS = 1 / 30


class ChromaApp(App):
    """Terminal control surface for the Chroma effects engine."""

    TITLE = "Chroma"

    CSS = """
    #body {
        height: auto;
    }
    """

    BINDINGS = [
        Binding("up", "param_prev", "Prev", show=False),
        Binding("down", "param_next", "Next", show=False),
        Binding("left", "adjust(-1)", "-", show=False),
        Binding("right", "adjust(1)", "+", show=False),
        Binding("tab", "section(1)", "Section ►", show=True, priority=True),
        Binding("shift+tab", "section(-1)", "Section ◄", show=False, priority=True),
        Binding("enter", "toggle", "Toggle", show=True),
        Binding("space", "toggle", "Toggle", show=False),
        Binding("i", "cycle_intensity", "Intensity", show=True),
        Binding("1", "blend_mode(0)", "Mirror", show=False),
        Binding("2", "blend_mode(1)", "Complement", show=False),
        Binding("3", "blend_mode(2)", "Transform", show=False),
        Binding("left_square_bracket", "move_effect(-1)", "Move ▲", show=False),
        Binding("right_square_bracket", "move_effect(1)", "Move ▼", show=False),
        Binding("r", "reset_order", "Reset order", show=False),
        Binding("s", "sync", "Resync", show=True),
        Binding("q", "quit", "Quit", show=True),
    ]

    def __init__(self, engine: ReconciliationEngine, receiver: OscReceiver,
                 midi_handler: Optional[MIDIInputHandler] = None, endpoint: str = ""):
        super().__init__()
        self.engine = engine
        self.receiver = receiver
        self.midi_handler = midi_handler
        self.endpoint = endpoint
        self.section_index = 0
        self.param_index = 0
        self.selected_effect = 0
        self._dirty = True

    def compose(self) -> ComposeResult:
        yield HeaderWidget("CHROMA", id="header")
        with Horizontal(id="body"):
            yield SectionSidebar(id="sections")
            with Vertical():
                yield ParameterPanel(id="parameters")
                yield Visualizer(id="visualizer")
        yield Footer()

    def on_mount(self):
        self.engine.subscribe(self._on_state)
        self.set_interval(TICK_SECONDS, self._tick)
        self.engine.request_sync()
        self.engine.request_order()
        self._refresh_views()

    def on_unmount(self):
        self.engine.unsubscribe(self._on_state)

    # ── Consumer loop ────────────────────────────────────────────

    def _tick(self):
        """Drain engine broadcasts, poll MIDI, refresh if anything changed."""
        self.engine.drain(self.receiver.channel)
        if self.midi_handler and self.midi_handler.is_device_open():
            self.midi_handler.poll_messages()
        self.engine.check_connection()
        if self.engine.expire_pending():
            self._dirty = True
        if self._dirty:
            self._refresh_views()

    def _on_state(self, snapshot: StateSnapshot):
        self._dirty = True

    def _refresh_views(self):
        self._dirty = False
        state = self.engine.state
        section = self.current_section
        self.query_one(SectionSidebar).show(state, section)
        self.query_one(ParameterPanel).show(
            state, section, self.param_index,
            pending=self.engine.pending_params(),
            selected_effect=self.selected_effect,
        )
        self.query_one(Visualizer).show(state.spectrum, state.waveform)
        midi_port = self.midi_handler.port_name if self.midi_handler else None
        self.query_one(HeaderWidget).update_status(
            self.engine.connected, self.endpoint, midi_port, len(self.engine.pending_params())
        )

    # ── Focus ────────────────────────────────────────────────────

    @property
    def current_section(self) -> str:
        return ALL_SECTIONS[self.section_index]

    @property
    def focused_param(self) -> Optional[Param]:
        params = params_in_section(self.current_section)
        if not params:
            return None
        return params[min(self.param_index, len(params) - 1)]

    def action_section(self, step: int):
        self.section_index = (self.section_index + step) % len(ALL_SECTIONS)
        self.param_index = 0
        self.selected_effect = 0
        self._refresh_views()

    def action_param_next(self):
        if self.current_section == CHAIN_SECTION:
            last = len(self.engine.state.effects_order) - 1
            self.selected_effect = min(self.selected_effect + 1, last)
        else:
            count = len(params_in_section(self.current_section))
            self.param_index = (self.param_index + 1) % max(count, 1)
        self._refresh_views()

    def action_param_prev(self):
        if self.current_section == CHAIN_SECTION:
            self.selected_effect = max(self.selected_effect - 1, 0)
        else:
            count = len(params_in_section(self.current_section))
            self.param_index = (self.param_index - 1) % max(count, 1)
        self._refresh_views()

    # ── Mutations ────────────────────────────────────────────────

    def action_adjust(self, direction: int):
        param = self.focused_param
        if param is None:
            return
        spec = spec_for(param)
        if spec.kind == Kind.FLOAT:
            self.engine.adjust(param, direction * ADJUST_STEP)
        elif spec.is_discrete:
            self.engine.cycle(param, direction)

    def action_toggle(self):
        param = self.focused_param
        if param is not None and spec_for(param).kind == Kind.BOOL:
            self.engine.toggle(param)

    def action_cycle_intensity(self):
        self.engine.cycle(Param.GRAIN_INTENSITY)

    def action_blend_mode(self, mode: int):
        self.engine.set_discrete(Param.BLEND_MODE, mode)

    def action_move_effect(self, direction: int):
        if self.current_section != CHAIN_SECTION:
            return
        if direction < 0 and self.engine.swap_up(self.selected_effect):
            self.selected_effect -= 1
        elif direction > 0 and self.engine.swap_down(self.selected_effect):
            self.selected_effect += 1
        self._refresh_views()

    def action_reset_order(self):
        if self.current_section == CHAIN_SECTION:
            self.engine.reset_order()
            self.selected_effect = 0

    def action_sync(self):
        self.engine.clear_pending()
        if self.engine.request_sync():
            self.notify("Requested engine state")
        else:
            self.notify("Sync request failed", severity="error")


def build_parser(config: ConfigManager) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Terminal control surface for Chroma")
    parser.add_argument("--host", default=config.get_osc_host(), help="Engine host")
    parser.add_argument("--port", type=int, default=config.get_osc_port(), help="Engine OSC port")
    parser.add_argument("--listen", type=int, default=config.get_listen_port(),
                        help="Port to listen for state updates")
    parser.add_argument("--no-midi", action="store_true", help="Disable MIDI input")
    parser.add_argument("--log-file", default=None, help="Write logs to this file")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser


def main(argv=None) -> int:
    config = ConfigManager()
    args = build_parser(config).parse_args(argv)
    setup_logging(logging.DEBUG if args.debug else logging.INFO,
                  log_file=args.log_file, console=False)

    sender = OscSender(args.host, args.port)
    receiver = OscReceiver("127.0.0.1", args.listen)
    if not receiver.start():
        print(f"Warning: cannot listen on port {args.listen}; running local-only", file=sys.stderr)

    initial = StateSnapshot(effects_order=tuple(config.get_effects_order()))
    engine = ReconciliationEngine(sender, connection_timeout=config.get_connection_timeout(),
                                  initial=initial)

    midi_handler = None
    if not args.no_midi:
        device_manager = MIDIDeviceManager(config)
        device = device_manager.resolve_device()
        midi_handler = MIDIInputHandler(engine, config.get_cc_map(), config.get_note_map())
        if device is None or not midi_handler.open_device(device):
            logger.warning("MIDI unavailable: %s", device_manager.last_error or "no input ports")
        else:
            device_manager.select_device(device)

    app = ChromaApp(engine, receiver, midi_handler, endpoint=f"{args.host}:{args.port}")
    try:
        app.run()
    finally:
        receiver.stop()
        sender.close()
        if midi_handler:
            midi_handler.close_device()
        if list(engine.state.effects_order) != config.get_effects_order():
            config.set_effects_order(list(engine.state.effects_order))
    return 0


if __name__ == "__main__":
    sys.exit(main())
