#!/usr/bin/env python3
"""ABOUTME: Tests for config persistence, MIDI mapping and the control registry.
ABOUTME: MIDI messages are built with mido and fed straight into the handler."""
import json
import sys
from pathlib import Path

import mido
import pytest

sys.path.insert(0, str(Path(__file__).parent))

from config_manager import DEFAULT_CC_MAP, ConfigManager
from control.engine import ReconciliationEngine
from control.registry import (
    ADDRESS_TO_PARAM,
    REGISTRY,
    STATE_SCHEMA,
    Kind,
    Param,
    from_normalized,
    params_in_section,
    to_normalized,
)
from control.state import SNAPSHOT_FIELDS
from midi.input_handler import MIDIInputHandler


class RecordingSender:
    def __init__(self):
        self.frames = []

    def send(self, frame):
        self.frames.append(frame)
        return True


# ── Registry ─────────────────────────────────────────────────────

def test_every_param_has_a_snapshot_field_and_unique_address():
    assert {p.value for p in Param} <= SNAPSHOT_FIELDS
    assert len(ADDRESS_TO_PARAM) == len(Param)


def test_state_schema_has_thirty_five_distinct_slots():
    assert len(STATE_SCHEMA) == 35
    assert len(set(STATE_SCHEMA)) == 35
    assert Param.OVERDRIVE_BIAS not in STATE_SCHEMA


def test_defaults_sit_inside_their_domains():
    for spec in REGISTRY.values():
        if spec.kind == Kind.FLOAT:
            assert spec.minimum <= spec.default <= spec.maximum, spec
        if spec.is_discrete:
            assert spec.default in spec.options, spec


def test_normalized_mapping_inverts():
    for param in (Param.FILTER_CUTOFF, Param.GRANULAR_SIZE, Param.MOD_RATE):
        value = from_normalized(param, 0.3)
        assert to_normalized(param, value) == pytest.approx(0.3)


def test_sections_list_their_controls():
    assert params_in_section("input") == [
        Param.GAIN, Param.INPUT_FREEZE_LENGTH, Param.INPUT_FREEZE]
    assert Param.EFFECTS_ORDER not in params_in_section("global")


# ── ConfigManager ────────────────────────────────────────────────

def test_missing_file_gives_defaults(tmp_path):
    config = ConfigManager(tmp_path / "config.json")
    assert config.get_osc_port() == 57120
    assert config.get_listen_port() == 9000
    assert config.get_cc_map()[1] == Param.GAIN


def test_malformed_file_falls_back(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    config = ConfigManager(path)
    assert config.get_osc_host() == "127.0.0.1"


def test_partial_file_is_filled_and_round_trips(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"osc_port": 57999}))
    config = ConfigManager(path)
    assert config.get_osc_port() == 57999
    assert config.get_listen_port() == 9000

    config.set_effects_order(["delay", "filter"])
    assert ConfigManager(path).get_effects_order() == ["delay", "filter"]


def test_bad_mapping_entries_are_skipped(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "midi_cc": {"gain": 1, "filter_enabled": 2, "nonsense": 3, "dry_wet": 300},
        "midi_notes": {"toggle:reverb_enabled": 60, "toggle:gain": 61, "blend_mode:7": 62},
    }))
    config = ConfigManager(path)
    assert config.get_cc_map() == {1: Param.GAIN}
    assert config.get_note_map() == {60: "toggle:reverb_enabled"}


def test_default_cc_map_targets_continuous_params():
    for name in DEFAULT_CC_MAP:
        assert REGISTRY[Param(name)].kind == Kind.FLOAT


# ── MIDI mapping ─────────────────────────────────────────────────

def _handler(tmp_path):
    config = ConfigManager(tmp_path / "config.json")
    sender = RecordingSender()
    engine = ReconciliationEngine(sender)
    return MIDIInputHandler(engine, config.get_cc_map(), config.get_note_map()), engine, sender


def test_control_change_sets_normalized_value(tmp_path):
    handler, engine, sender = _handler(tmp_path)
    assert handler.handle_message(mido.Message('control_change', control=4, value=127))
    assert engine.state.filter_cutoff == pytest.approx(8000.0)
    assert engine.has_pending(Param.FILTER_CUTOFF)
    assert sender.frames[-1].address == "/chroma/filterCutoff"


def test_note_on_toggles_and_selects_blend_mode(tmp_path):
    handler, engine, _ = _handler(tmp_path)
    assert handler.handle_message(mido.Message('note_on', note=60, velocity=100))
    assert engine.state.input_freeze is True
    assert handler.handle_message(mido.Message('note_on', note=67, velocity=90))
    assert engine.state.blend_mode == 2


def test_unmapped_and_released_notes_are_ignored(tmp_path):
    handler, engine, sender = _handler(tmp_path)
    assert not handler.handle_message(mido.Message('note_on', note=60, velocity=0))
    assert not handler.handle_message(mido.Message('note_off', note=60))
    assert not handler.handle_message(mido.Message('control_change', control=99, value=10))
    assert sender.frames == []


def test_poll_without_port_is_noop(tmp_path):
    handler, _, _ = _handler(tmp_path)
    assert handler.is_device_open() is False
    assert handler.poll_messages() == 0
