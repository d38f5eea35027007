"""ABOUTME: Static table of every controllable Chroma parameter.
ABOUTME: Single source of truth for OSC addresses, payload kinds and value domains."""
import math
from enum import Enum
from typing import Dict, List, Optional, Tuple


ADDRESS_PREFIX = "/chroma"

STATE_ADDRESS = f"{ADDRESS_PREFIX}/state"
SPECTRUM_ADDRESS = f"{ADDRESS_PREFIX}/spectrum"
WAVEFORM_ADDRESS = f"{ADDRESS_PREFIX}/waveform"
EFFECTS_ORDER_ADDRESS = f"{ADDRESS_PREFIX}/effectsOrder"
GET_EFFECTS_ORDER_ADDRESS = f"{ADDRESS_PREFIX}/getEffectsOrder"
SYNC_ADDRESS = f"{ADDRESS_PREFIX}/sync"

SPECTRUM_BANDS = 8
WAVEFORM_SAMPLES = 64
MAX_STRING_BYTES = 255

DEFAULT_EFFECTS_ORDER: Tuple[str, ...] = (
    "filter", "overdrive", "bitcrush", "granular", "reverb", "delay",
)

GRAIN_INTENSITIES: Tuple[str, ...] = ("subtle", "pronounced", "extreme")
BLEND_MODES: Tuple[int, ...] = (0, 1, 2)
BLEND_MODE_NAMES: Tuple[str, ...] = ("mirror", "complement", "transform")


class Param(str, Enum):
    """Identity of one controllable quantity.

    The value doubles as the attribute name on ``StateSnapshot``.
    """

    GAIN = "gain"
    INPUT_FREEZE = "input_freeze"
    INPUT_FREEZE_LENGTH = "input_freeze_length"
    FILTER_ENABLED = "filter_enabled"
    FILTER_AMOUNT = "filter_amount"
    FILTER_CUTOFF = "filter_cutoff"
    FILTER_RESONANCE = "filter_resonance"
    OVERDRIVE_ENABLED = "overdrive_enabled"
    OVERDRIVE_DRIVE = "overdrive_drive"
    OVERDRIVE_TONE = "overdrive_tone"
    OVERDRIVE_BIAS = "overdrive_bias"
    OVERDRIVE_MIX = "overdrive_mix"
    BITCRUSH_ENABLED = "bitcrush_enabled"
    BIT_DEPTH = "bit_depth"
    BITCRUSH_SAMPLE_RATE = "bitcrush_sample_rate"
    BITCRUSH_DRIVE = "bitcrush_drive"
    BITCRUSH_MIX = "bitcrush_mix"
    GRANULAR_ENABLED = "granular_enabled"
    GRANULAR_DENSITY = "granular_density"
    GRANULAR_SIZE = "granular_size"
    GRANULAR_PITCH_SCATTER = "granular_pitch_scatter"
    GRANULAR_POS_SCATTER = "granular_pos_scatter"
    GRANULAR_MIX = "granular_mix"
    GRANULAR_FREEZE = "granular_freeze"
    GRAIN_INTENSITY = "grain_intensity"
    REVERB_ENABLED = "reverb_enabled"
    REVERB_DECAY_TIME = "reverb_decay_time"
    REVERB_MIX = "reverb_mix"
    DELAY_ENABLED = "delay_enabled"
    DELAY_TIME = "delay_time"
    DELAY_DECAY_TIME = "delay_decay_time"
    MOD_RATE = "mod_rate"
    MOD_DEPTH = "mod_depth"
    DELAY_MIX = "delay_mix"
    BLEND_MODE = "blend_mode"
    DRY_WET = "dry_wet"
    EFFECTS_ORDER = "effects_order"


class Kind(str, Enum):
    """Payload kind carried on the wire."""

    FLOAT = "float"
    BOOL = "bool"
    INT = "int"
    STRING = "string"
    STRING_LIST = "string_list"


class Curve(str, Enum):
    LINEAR = "linear"
    LOG = "log"


class ParamSpec:
    """Domain descriptor for one parameter."""

    def __init__(self, param: Param, address: str, kind: Kind, label: str, section: str,
                 default, minimum: float = 0.0, maximum: float = 1.0,
                 curve: Curve = Curve.LINEAR, scale: float = 1.0,
                 options: Optional[tuple] = None):
        self.param = param
        self.address = address
        self.kind = kind
        self.label = label
        self.section = section
        self.default = default
        self.minimum = minimum
        self.maximum = maximum
        self.curve = curve
        self.scale = scale
        self.options = options

    @property
    def is_discrete(self) -> bool:
        return self.options is not None

    def __repr__(self):
        return f"ParamSpec({self.param.value!r}, {self.address!r}, {self.kind.value})"


def _float(param, name, label, section, default, lo, hi, scale=1.0, curve=Curve.LINEAR):
    return ParamSpec(param, f"{ADDRESS_PREFIX}/{name}", Kind.FLOAT, label, section,
                     default, lo, hi, curve=curve, scale=scale)


def _switch(param, name, label, section, default=False):
    return ParamSpec(param, f"{ADDRESS_PREFIX}/{name}", Kind.BOOL, label, section,
                     default, 0, 1)


# Defaults mirror the engine's own startup values.
_SPECS: List[ParamSpec] = [
    # ── Input ────────────────────────────────────────────────────
    _float(Param.GAIN, "gain", "Gain", "input", 1.0, 0.0, 2.0, scale=2.0),
    _float(Param.INPUT_FREEZE_LENGTH, "inputFreezeLength", "Loop Length", "input",
           0.1, 0.05, 0.5, scale=0.45),
    _switch(Param.INPUT_FREEZE, "inputFreeze", "Input Freeze", "input"),
    # ── Filter ───────────────────────────────────────────────────
    _switch(Param.FILTER_ENABLED, "filterEnabled", "Filter", "filter", True),
    _float(Param.FILTER_AMOUNT, "filterAmount", "Amount", "filter", 0.5, 0.0, 1.0),
    _float(Param.FILTER_CUTOFF, "filterCutoff", "Cutoff", "filter",
           2000.0, 200.0, 8000.0, scale=7800.0),
    _float(Param.FILTER_RESONANCE, "filterResonance", "Resonance", "filter", 0.3, 0.0, 1.0),
    # ── Overdrive ────────────────────────────────────────────────
    _switch(Param.OVERDRIVE_ENABLED, "overdriveEnabled", "Overdrive", "overdrive"),
    _float(Param.OVERDRIVE_DRIVE, "overdriveDrive", "Drive", "overdrive", 0.5, 0.0, 1.0),
    _float(Param.OVERDRIVE_TONE, "overdriveTone", "Tone", "overdrive", 0.7, 0.0, 1.0),
    _float(Param.OVERDRIVE_BIAS, "overdriveBias", "Bias", "overdrive", 0.5, -1.0, 1.0),
    _float(Param.OVERDRIVE_MIX, "overdriveMix", "Mix", "overdrive", 0.0, 0.0, 1.0),
    # ── Bitcrush ─────────────────────────────────────────────────
    _switch(Param.BITCRUSH_ENABLED, "bitcrushEnabled", "Bitcrush", "bitcrush"),
    _float(Param.BIT_DEPTH, "bitDepth", "Bit Depth", "bitcrush", 8.0, 4.0, 16.0, scale=12.0),
    _float(Param.BITCRUSH_SAMPLE_RATE, "bitcrushSampleRate", "Sample Rate", "bitcrush",
           11025.0, 1000.0, 44100.0, scale=43100.0),
    _float(Param.BITCRUSH_DRIVE, "bitcrushDrive", "Drive", "bitcrush", 0.5, 0.0, 1.0),
    _float(Param.BITCRUSH_MIX, "bitcrushMix", "Mix", "bitcrush", 0.3, 0.0, 1.0),
    # ── Granular ─────────────────────────────────────────────────
    _switch(Param.GRANULAR_ENABLED, "granularEnabled", "Granular", "granular", True),
    _float(Param.GRANULAR_DENSITY, "granularDensity", "Density", "granular",
           20.0, 1.0, 50.0, scale=0.8, curve=Curve.LOG),
    _float(Param.GRANULAR_SIZE, "granularSize", "Grain Size", "granular",
           0.15, 0.01, 0.5, scale=0.5, curve=Curve.LOG),
    _float(Param.GRANULAR_PITCH_SCATTER, "granularPitchScatter", "Pitch Scatter", "granular",
           0.2, 0.0, 1.0),
    _float(Param.GRANULAR_POS_SCATTER, "granularPosScatter", "Position Scatter", "granular",
           0.3, 0.0, 1.0),
    _float(Param.GRANULAR_MIX, "granularMix", "Mix", "granular", 0.5, 0.0, 1.0),
    _switch(Param.GRANULAR_FREEZE, "granularFreeze", "Granular Freeze", "granular"),
    ParamSpec(Param.GRAIN_INTENSITY, f"{ADDRESS_PREFIX}/grainIntensity", Kind.STRING,
              "Intensity", "granular", "subtle", options=GRAIN_INTENSITIES),
    # ── Reverb ───────────────────────────────────────────────────
    _switch(Param.REVERB_ENABLED, "reverbEnabled", "Reverb", "reverb"),
    _float(Param.REVERB_DECAY_TIME, "reverbDecayTime", "Decay Time", "reverb",
           3.0, 0.5, 10.0, scale=9.5),
    _float(Param.REVERB_MIX, "reverbMix", "Mix", "reverb", 0.3, 0.0, 1.0),
    # ── Delay ────────────────────────────────────────────────────
    _switch(Param.DELAY_ENABLED, "delayEnabled", "Delay", "delay"),
    _float(Param.DELAY_TIME, "delayTime", "Time", "delay", 0.3, 0.1, 1.0, scale=0.9),
    _float(Param.DELAY_DECAY_TIME, "delayDecayTime", "Decay Time", "delay",
           3.0, 0.5, 10.0, scale=9.5),
    _float(Param.MOD_RATE, "modRate", "Mod Rate", "delay",
           0.5, 0.1, 5.0, scale=0.5, curve=Curve.LOG),
    _float(Param.MOD_DEPTH, "modDepth", "Mod Depth", "delay",
           0.3, 0.0, 1.0, scale=0.5, curve=Curve.LOG),
    _float(Param.DELAY_MIX, "delayMix", "Mix", "delay", 0.3, 0.0, 1.0),
    # ── Global ───────────────────────────────────────────────────
    ParamSpec(Param.BLEND_MODE, f"{ADDRESS_PREFIX}/blendMode", Kind.INT,
              "Blend Mode", "global", 0, 0, 2, options=BLEND_MODES),
    _float(Param.DRY_WET, "dryWet", "Dry/Wet", "global", 0.5, 0.0, 1.0),
    ParamSpec(Param.EFFECTS_ORDER, EFFECTS_ORDER_ADDRESS, Kind.STRING_LIST,
              "Effects Order", "global", DEFAULT_EFFECTS_ORDER),
]

REGISTRY: Dict[Param, ParamSpec] = {spec.param: spec for spec in _SPECS}

ADDRESS_TO_PARAM: Dict[str, Param] = {spec.address: spec.param for spec in _SPECS}

SECTIONS: Tuple[str, ...] = (
    "input", "filter", "overdrive", "bitcrush", "granular", "reverb", "delay", "global",
)

# Positional layout of the /chroma/state broadcast. Overdrive bias is
# settable but the engine does not report it.
STATE_SCHEMA: Tuple[Param, ...] = (
    Param.GAIN,
    Param.INPUT_FREEZE,
    Param.INPUT_FREEZE_LENGTH,
    Param.FILTER_ENABLED,
    Param.FILTER_AMOUNT,
    Param.FILTER_CUTOFF,
    Param.FILTER_RESONANCE,
    Param.OVERDRIVE_ENABLED,
    Param.OVERDRIVE_DRIVE,
    Param.OVERDRIVE_TONE,
    Param.OVERDRIVE_MIX,
    Param.GRANULAR_ENABLED,
    Param.GRANULAR_DENSITY,
    Param.GRANULAR_SIZE,
    Param.GRANULAR_PITCH_SCATTER,
    Param.GRANULAR_POS_SCATTER,
    Param.GRANULAR_MIX,
    Param.GRANULAR_FREEZE,
    Param.GRAIN_INTENSITY,
    Param.BITCRUSH_ENABLED,
    Param.BIT_DEPTH,
    Param.BITCRUSH_SAMPLE_RATE,
    Param.BITCRUSH_DRIVE,
    Param.BITCRUSH_MIX,
    Param.REVERB_ENABLED,
    Param.REVERB_DECAY_TIME,
    Param.REVERB_MIX,
    Param.DELAY_ENABLED,
    Param.DELAY_TIME,
    Param.DELAY_DECAY_TIME,
    Param.MOD_RATE,
    Param.MOD_DEPTH,
    Param.DELAY_MIX,
    Param.BLEND_MODE,
    Param.DRY_WET,
)

STATE_MIN_ARGS = len(STATE_SCHEMA)


def spec_for(param: Param) -> ParamSpec:
    return REGISTRY[Param(param)]


def params_in_section(section: str) -> List[Param]:
    """Return the parameters shown under a section, in registry order."""
    return [spec.param for spec in _SPECS
            if spec.section == section and spec.kind != Kind.STRING_LIST]


def clamp(value: float, minimum: float, maximum: float) -> float:
    if value < minimum:
        return minimum
    if value > maximum:
        return maximum
    return value


def _uses_log(spec: ParamSpec) -> bool:
    return spec.curve == Curve.LOG and spec.minimum > 0


def from_normalized(param: Param, fraction: float) -> float:
    """Map a 0..1 controller position onto the parameter's domain."""
    spec = spec_for(param)
    fraction = clamp(fraction, 0.0, 1.0)
    if _uses_log(spec):
        lo, hi = math.log10(spec.minimum), math.log10(spec.maximum)
        return 10 ** (lo + fraction * (hi - lo))
    return spec.minimum + fraction * (spec.maximum - spec.minimum)


def to_normalized(param: Param, value: float) -> float:
    """Inverse of ``from_normalized``; used for slider rendering."""
    spec = spec_for(param)
    span = spec.maximum - spec.minimum
    if span <= 0:
        return 0.0
    if _uses_log(spec) and value > 0:
        lo, hi = math.log10(spec.minimum), math.log10(spec.maximum)
        return clamp((math.log10(value) - lo) / (hi - lo), 0.0, 1.0)
    return clamp((value - spec.minimum) / span, 0.0, 1.0)
