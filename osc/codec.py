"""ABOUTME: OSC wire codec for Chroma control frames.
ABOUTME: Encodes parameter changes and defensively decodes inbound engine broadcasts."""
import logging
import math
from typing import Any, Dict, NamedTuple, Optional, Sequence, Tuple

import numpy as np
from pythonosc.osc_message import OscMessage, ParseError
from pythonosc.osc_message_builder import BuildError, OscMessageBuilder

from control.registry import (
    ADDRESS_TO_PARAM,
    EFFECTS_ORDER_ADDRESS,
    GET_EFFECTS_ORDER_ADDRESS,
    MAX_STRING_BYTES,
    SPECTRUM_ADDRESS,
    SPECTRUM_BANDS,
    STATE_ADDRESS,
    STATE_MIN_ARGS,
    STATE_SCHEMA,
    SYNC_ADDRESS,
    WAVEFORM_ADDRESS,
    WAVEFORM_SAMPLES,
    Kind,
    Param,
    spec_for,
)

logger = logging.getLogger(__name__)

INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1

FALLBACK_STRING = "subtle"

Fragment = Dict[str, Any]


class Frame(NamedTuple):
    """One wire message: address plus typed arguments."""

    address: str
    args: Tuple[Any, ...] = ()
    types: str = ""


# ── Encoding ─────────────────────────────────────────────────────

def truncate_string(text: str) -> str:
    """Clip a string to the protocol's 255-byte limit (UTF-8 safe)."""
    raw = text.encode("utf-8")
    if len(raw) <= MAX_STRING_BYTES:
        return text
    logger.warning("String of %d bytes exceeds %d, truncating", len(raw), MAX_STRING_BYTES)
    return raw[:MAX_STRING_BYTES].decode("utf-8", errors="ignore")


def encode(param: Param, value) -> Frame:
    """Build the set-frame for one parameter.

    Args:
        param: Parameter identity.
        value: Local value in the parameter's domain.

    Returns:
        Frame addressed to the parameter's set address.
    """
    spec = spec_for(param)
    if spec.kind == Kind.FLOAT:
        return Frame(spec.address, (float(value),), "f")
    if spec.kind == Kind.BOOL:
        return Frame(spec.address, (1 if value else 0,), "i")
    if spec.kind == Kind.INT:
        return Frame(spec.address, (int(value),), "i")
    if spec.kind == Kind.STRING:
        return Frame(spec.address, (truncate_string(str(value)),), "s")
    tokens = tuple(truncate_string(str(token)) for token in value)
    return Frame(spec.address, tokens, "s" * len(tokens))


def encode_sync() -> Frame:
    """Zero-argument frame asking the engine for a full-state broadcast."""
    return Frame(SYNC_ADDRESS)


def encode_order_request() -> Frame:
    return Frame(GET_EFFECTS_ORDER_ADDRESS)


def to_message(frame: Frame) -> OscMessage:
    builder = OscMessageBuilder(address=frame.address)
    for arg, arg_type in zip(frame.args, frame.types):
        builder.add_arg(arg, arg_type)
    try:
        return builder.build()
    except BuildError as e:
        raise ValueError(f"Cannot build OSC message for {frame.address}: {e}") from e


# ── Defensive slot coercion ──────────────────────────────────────
#
# Each inbound slot is matched against the accepted source representations;
# anything else falls through to a default. Non-finite numbers become zero.

def coerce_float(value: Any, slot: str = "value") -> float:
    if isinstance(value, (bool, np.bool_)):
        result = float(value)
    elif isinstance(value, (int, np.integer)):
        result = float(value)
    elif isinstance(value, (float, np.floating)):
        result = float(value)
    else:
        logger.warning("%s: invalid type %s, expected float/int, using 0.0",
                       slot, type(value).__name__)
        return 0.0
    if not math.isfinite(result):
        logger.warning("%s: non-finite value %r, using 0.0", slot, result)
        return 0.0
    return result


def coerce_int(value: Any, slot: str = "value") -> int:
    if isinstance(value, (bool, np.bool_)):
        return int(value)
    if isinstance(value, (int, np.integer)):
        result = int(value)
        if INT32_MIN <= result <= INT32_MAX:
            return result
        logger.warning("%s: value %d out of int32 range, using 0", slot, result)
        return 0
    if isinstance(value, (float, np.floating)):
        as_float = float(value)
        if not math.isfinite(as_float):
            logger.warning("%s: non-finite value %r, using 0", slot, as_float)
            return 0
        if not INT32_MIN <= as_float <= INT32_MAX:
            logger.warning("%s: value %f out of int32 range, using 0", slot, as_float)
            return 0
        return int(as_float)
    logger.warning("%s: invalid type %s, expected int/float, using 0",
                   slot, type(value).__name__)
    return 0


def coerce_string(value: Any, slot: str = "value") -> str:
    if isinstance(value, str):
        return truncate_string(value)
    if isinstance(value, bytes):
        return truncate_string(value.decode("utf-8", errors="ignore"))
    logger.warning("%s: invalid type %s, expected string, using %r",
                   slot, type(value).__name__, FALLBACK_STRING)
    return FALLBACK_STRING


def _coerce_slot(param: Param, value: Any):
    kind = spec_for(param).kind
    if kind == Kind.FLOAT:
        return coerce_float(value, param.value)
    if kind == Kind.BOOL:
        return coerce_int(value, param.value) == 1
    if kind == Kind.INT:
        return coerce_int(value, param.value)
    return coerce_string(value, param.value)


# ── Decoding ─────────────────────────────────────────────────────

def _decode_state(args: Sequence[Any]) -> Optional[Fragment]:
    if len(args) < STATE_MIN_ARGS:
        logger.warning("Discarding %s with %d args (need %d)",
                       STATE_ADDRESS, len(args), STATE_MIN_ARGS)
        return None
    return {param.value: _coerce_slot(param, arg) for param, arg in zip(STATE_SCHEMA, args)}


def _decode_array(name: str, args: Sequence[Any], length: int) -> Optional[Fragment]:
    if len(args) < length:
        logger.debug("Ignoring short %s frame (%d of %d values)", name, len(args), length)
        return None
    values = tuple(coerce_float(arg, f"{name}[{i}]") for i, arg in enumerate(args[:length]))
    return {name: values}


def _decode_order(args: Sequence[Any]) -> Optional[Fragment]:
    tokens = []
    for arg in args:
        if isinstance(arg, str):
            tokens.append(truncate_string(arg))
        else:
            logger.warning("effects_order: dropping non-string token %r", arg)
    if not tokens:
        return None
    return {Param.EFFECTS_ORDER.value: tuple(tokens)}


def decode(address: str, args: Sequence[Any]) -> Optional[Fragment]:
    """Decode an inbound frame into a partial snapshot.

    Never raises; malformed frames decode to ``None``.

    Args:
        address: OSC address of the received message.
        args: Positional arguments as parsed off the wire.

    Returns:
        Mapping of snapshot attribute names to values, or None if the frame
        is unknown or must be discarded.
    """
    args = tuple(args or ())
    try:
        if address == STATE_ADDRESS:
            return _decode_state(args)
        if address == SPECTRUM_ADDRESS:
            return _decode_array("spectrum", args, SPECTRUM_BANDS)
        if address == WAVEFORM_ADDRESS:
            return _decode_array("waveform", args, WAVEFORM_SAMPLES)
        if address == EFFECTS_ORDER_ADDRESS:
            return _decode_order(args)
        param = ADDRESS_TO_PARAM.get(address)
        if param is None:
            logger.debug("Ignoring frame for unknown address %s", address)
            return None
        if not args:
            logger.warning("Discarding %s with no argument", address)
            return None
        return {param.value: _coerce_slot(param, args[0])}
    except Exception:
        logger.exception("Unexpected failure decoding %s", address)
        return None


def from_datagram(dgram: bytes) -> Optional[Fragment]:
    """Parse raw UDP payload and decode it."""
    if not OscMessage.dgram_is_message(dgram):
        logger.debug("Dropping datagram that is not an OSC message")
        return None
    try:
        message = OscMessage(dgram)
    except ParseError as e:
        logger.warning("Dropping unparseable datagram: %s", e)
        return None
    return decode(message.address, message.params)
