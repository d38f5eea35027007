"""Configuration file management."""
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from control.registry import BLEND_MODES, DEFAULT_EFFECTS_ORDER, Kind, Param, REGISTRY

logger = logging.getLogger(__name__)

REGISTRY_NAMES = {p.value for p in Param}

DEFAULT_CC_MAP: Dict[str, int] = {
    "gain": 1,
    "input_freeze_length": 2,
    "filter_amount": 3,
    "filter_cutoff": 4,
    "filter_resonance": 5,
    "granular_density": 6,
    "granular_size": 7,
    "granular_mix": 8,
    "reverb_mix": 9,
    "delay_decay_time": 10,
    "dry_wet": 11,
}

DEFAULT_NOTE_MAP: Dict[str, int] = {
    "toggle:input_freeze": 60,
    "toggle:granular_freeze": 62,
    "blend_mode:0": 64,
    "blend_mode:1": 65,
    "blend_mode:2": 67,
}


def is_valid_note_action(action: str) -> bool:
    """Check a note action of the form ``toggle:<param>`` or ``blend_mode:<n>``."""
    kind, _, arg = action.partition(":")
    if kind == "toggle":
        return arg in REGISTRY_NAMES and REGISTRY[Param(arg)].kind == Kind.BOOL
    if kind == "blend_mode":
        return arg.isdigit() and int(arg) in BLEND_MODES
    return False


class ConfigManager:
    """Manages application configuration."""

    def __init__(self, config_file: Optional[Path] = None):
        if config_file is None:
            config_file = Path(__file__).parent / "config.json"
        self.config_file = Path(config_file)
        self.config = self._load_config()

    def _load_config(self) -> dict:
        """Load configuration from file, filling missing keys with defaults."""
        config = self._default_config()
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    config.update(data)
                else:
                    logger.warning("Ignoring %s: top level is not an object", self.config_file)
            except (OSError, ValueError) as e:
                logger.warning("Could not read %s, using defaults: %s", self.config_file, e)
                return self._default_config()
        return config

    def _default_config(self) -> dict:
        """Return default configuration."""
        return {
            "osc_host": "127.0.0.1",
            "osc_port": 57120,
            "listen_port": 9000,
            "selected_midi_device": None,
            "midi_cc": dict(DEFAULT_CC_MAP),
            "midi_notes": dict(DEFAULT_NOTE_MAP),
            "connection_timeout": 3.0,
            "effects_order": list(DEFAULT_EFFECTS_ORDER),
        }

    def save_config(self) -> bool:
        """Save configuration to file."""
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2)
            return True
        except OSError as e:
            logger.error("Error saving config: %s", e)
            return False

    # ── Engine endpoints ─────────────────────────────────────────

    def get_osc_host(self) -> str:
        return str(self.config.get("osc_host", "127.0.0.1"))

    def get_osc_port(self) -> int:
        return int(self.config.get("osc_port", 57120))

    def get_listen_port(self) -> int:
        return int(self.config.get("listen_port", 9000))

    def get_connection_timeout(self) -> float:
        """Seconds without engine state before the link is shown as down."""
        try:
            return max(0.5, float(self.config.get("connection_timeout", 3.0)))
        except (TypeError, ValueError):
            return 3.0

    # ── MIDI device ──────────────────────────────────────────────

    def get_selected_device(self) -> Optional[str]:
        """Get the saved MIDI device."""
        return self.config.get("selected_midi_device")

    def set_selected_device(self, device_name: Optional[str]):
        """Save the selected MIDI device."""
        self.config["selected_midi_device"] = device_name
        self.save_config()

    # ── MIDI mappings ────────────────────────────────────────────

    def get_cc_map(self) -> Dict[int, Param]:
        """Return controller number → continuous parameter, skipping bad entries."""
        mapping: Dict[int, Param] = {}
        for name, cc in dict(self.config.get("midi_cc") or {}).items():
            if name not in REGISTRY_NAMES or REGISTRY[Param(name)].kind != Kind.FLOAT:
                logger.warning("midi_cc: %r is not a continuous parameter, skipping", name)
                continue
            if not isinstance(cc, int) or not 0 <= cc <= 127:
                logger.warning("midi_cc: %r has invalid controller %r, skipping", name, cc)
                continue
            mapping[cc] = Param(name)
        return mapping

    def get_note_map(self) -> Dict[int, str]:
        """Return note number → action string, skipping bad entries."""
        mapping: Dict[int, str] = {}
        for action, note in dict(self.config.get("midi_notes") or {}).items():
            if not is_valid_note_action(action):
                logger.warning("midi_notes: unknown action %r, skipping", action)
                continue
            if not isinstance(note, int) or not 0 <= note <= 127:
                logger.warning("midi_notes: %r has invalid note %r, skipping", action, note)
                continue
            mapping[note] = action
        return mapping

    # ── Effects chain ────────────────────────────────────────────

    def get_effects_order(self) -> List[str]:
        order = self.config.get("effects_order")
        if not isinstance(order, list) or not all(isinstance(x, str) for x in order) or not order:
            return list(DEFAULT_EFFECTS_ORDER)
        return list(order)

    def set_effects_order(self, order: List[str]):
        self.config["effects_order"] = list(order)
        self.save_config()
