"""Snapshot and model types shared by the transport and the reconciliation engine."""
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, FrozenSet, Optional, Tuple

from control.registry import (
    DEFAULT_EFFECTS_ORDER,
    REGISTRY,
    SPECTRUM_BANDS,
    WAVEFORM_SAMPLES,
    Param,
)

TELEMETRY_FIELDS: FrozenSet[str] = frozenset({"spectrum", "waveform"})


def _default(param: Param):
    return REGISTRY[param].default


@dataclass(frozen=True)
class StateSnapshot:
    """Point-in-time value of every parameter plus visualizer telemetry."""

    gain: float = _default(Param.GAIN)
    input_freeze: bool = _default(Param.INPUT_FREEZE)
    input_freeze_length: float = _default(Param.INPUT_FREEZE_LENGTH)
    filter_enabled: bool = _default(Param.FILTER_ENABLED)
    filter_amount: float = _default(Param.FILTER_AMOUNT)
    filter_cutoff: float = _default(Param.FILTER_CUTOFF)
    filter_resonance: float = _default(Param.FILTER_RESONANCE)
    overdrive_enabled: bool = _default(Param.OVERDRIVE_ENABLED)
    overdrive_drive: float = _default(Param.OVERDRIVE_DRIVE)
    overdrive_tone: float = _default(Param.OVERDRIVE_TONE)
    overdrive_bias: float = _default(Param.OVERDRIVE_BIAS)
    overdrive_mix: float = _default(Param.OVERDRIVE_MIX)
    bitcrush_enabled: bool = _default(Param.BITCRUSH_ENABLED)
    bit_depth: float = _default(Param.BIT_DEPTH)
    bitcrush_sample_rate: float = _default(Param.BITCRUSH_SAMPLE_RATE)
    bitcrush_drive: float = _default(Param.BITCRUSH_DRIVE)
    bitcrush_mix: float = _default(Param.BITCRUSH_MIX)
    granular_enabled: bool = _default(Param.GRANULAR_ENABLED)
    granular_density: float = _default(Param.GRANULAR_DENSITY)
    granular_size: float = _default(Param.GRANULAR_SIZE)
    granular_pitch_scatter: float = _default(Param.GRANULAR_PITCH_SCATTER)
    granular_pos_scatter: float = _default(Param.GRANULAR_POS_SCATTER)
    granular_mix: float = _default(Param.GRANULAR_MIX)
    granular_freeze: bool = _default(Param.GRANULAR_FREEZE)
    grain_intensity: str = _default(Param.GRAIN_INTENSITY)
    reverb_enabled: bool = _default(Param.REVERB_ENABLED)
    reverb_decay_time: float = _default(Param.REVERB_DECAY_TIME)
    reverb_mix: float = _default(Param.REVERB_MIX)
    delay_enabled: bool = _default(Param.DELAY_ENABLED)
    delay_time: float = _default(Param.DELAY_TIME)
    delay_decay_time: float = _default(Param.DELAY_DECAY_TIME)
    mod_rate: float = _default(Param.MOD_RATE)
    mod_depth: float = _default(Param.MOD_DEPTH)
    delay_mix: float = _default(Param.DELAY_MIX)
    blend_mode: int = _default(Param.BLEND_MODE)
    dry_wet: float = _default(Param.DRY_WET)
    effects_order: Tuple[str, ...] = DEFAULT_EFFECTS_ORDER
    # Telemetry, never edited locally
    spectrum: Tuple[float, ...] = (0.0,) * SPECTRUM_BANDS
    waveform: Tuple[float, ...] = (0.0,) * WAVEFORM_SAMPLES

    def get(self, param: Param) -> Any:
        return getattr(self, Param(param).value)

    def merged(self, fragment: Dict[str, Any]) -> "StateSnapshot":
        """Return a copy with the fragment's attributes overwritten."""
        if not fragment:
            return self
        return replace(self, **fragment)

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


SNAPSHOT_FIELDS: FrozenSet[str] = frozenset(f.name for f in fields(StateSnapshot))


@dataclass(frozen=True)
class InboundState:
    """What the receiver has heard from the engine so far.

    ``reported`` names the snapshot attributes the engine has actually sent;
    anything else in ``snapshot`` is still the receiver's startup default.
    """

    snapshot: StateSnapshot
    reported: FrozenSet[str] = frozenset()


@dataclass
class Model:
    """Authoritative local copy. Only the reconciliation engine writes it."""

    state: StateSnapshot = field(default_factory=StateSnapshot)
    pending: Dict[Param, float] = field(default_factory=dict)
    connected: bool = False
    last_inbound: Optional[float] = None
