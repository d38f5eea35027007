"""ABOUTME: Reconciliation engine owning the local parameter model.
ABOUTME: Merges engine broadcasts with in-flight local edits using a per-parameter grace window."""
import logging
import math
import time
from typing import Callable, Dict, List, Optional, Sequence

from control.registry import (
    DEFAULT_EFFECTS_ORDER,
    Curve,
    Kind,
    Param,
    clamp,
    from_normalized,
    spec_for,
)
from control.state import TELEMETRY_FIELDS, InboundState, Model, StateSnapshot
from osc import codec

logger = logging.getLogger(__name__)

GRACE_WINDOW = 0.5
CONNECTION_TIMEOUT = 3.0

StateListener = Callable[[StateSnapshot], None]


def adjust_linear(current: float, delta: float, minimum: float, maximum: float) -> float:
    return clamp(current + delta, minimum, maximum)


def adjust_logarithmic(current: float, delta: float, minimum: float, maximum: float) -> float:
    """Step in log10 space so each step is the same perceptual ratio.

    A delta of 1.0 moves a tenth of the way across the full range. Falls
    back to a linear step when the current value or the minimum is not
    positive.
    """
    if current <= 0 or minimum <= 0:
        return adjust_linear(current, delta, minimum, maximum)

    log_min = math.log10(minimum)
    log_max = math.log10(maximum)
    new_log = math.log10(current) + delta * 0.1 * (log_max - log_min)
    new_log = clamp(new_log, log_min, log_max)
    return clamp(10 ** new_log, minimum, maximum)


class ReconciliationEngine:
    """Single owner of the Model.

    Every method runs on the consumer's thread; the receive thread only ever
    talks to the engine through the state channel.
    """

    def __init__(self, sender=None, clock: Callable[[], float] = time.monotonic,
                 grace_window: float = GRACE_WINDOW,
                 connection_timeout: float = CONNECTION_TIMEOUT,
                 initial: Optional[StateSnapshot] = None):
        self.sender = sender
        self.clock = clock
        self.grace_window = grace_window
        self.connection_timeout = connection_timeout
        self._model = Model(state=initial or StateSnapshot())
        self._listeners: List[StateListener] = []

    # ── Read access ──────────────────────────────────────────────

    @property
    def state(self) -> StateSnapshot:
        return self._model.state

    @property
    def connected(self) -> bool:
        return self._model.connected

    def has_pending(self, param: Param) -> bool:
        """True while the parameter's last local edit is inside the grace window."""
        stamp = self._model.pending.get(Param(param))
        return stamp is not None and self.clock() - stamp < self.grace_window

    def pending_params(self) -> List[Param]:
        return list(self._model.pending)

    def subscribe(self, listener: StateListener) -> None:
        """Register a callback for the "state updated" event."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ── Inbound merge ────────────────────────────────────────────

    def expire_pending(self, now: Optional[float] = None) -> List[Param]:
        """Drop pending entries older than the grace window."""
        now = self.clock() if now is None else now
        expired = [p for p, stamp in self._model.pending.items()
                   if now - stamp >= self.grace_window]
        for param in expired:
            del self._model.pending[param]
        return expired

    def clear_pending(self, param: Optional[Param] = None) -> None:
        """Mark one parameter clean, or every parameter when ``param`` is None."""
        if param is None:
            self._model.pending.clear()
        else:
            self._model.pending.pop(Param(param), None)

    def apply(self, inbound) -> StateSnapshot:
        """Merge an inbound snapshot into the model.

        Args:
            inbound: ``InboundState`` from the receiver, or a bare
                ``StateSnapshot`` treated as reporting every attribute.

        Returns:
            The merged snapshot now held by the model.
        """
        if isinstance(inbound, StateSnapshot):
            snapshot = inbound
            reported = snapshot.as_dict().keys()
        else:
            snapshot = inbound.snapshot
            reported = inbound.reported

        now = self.clock()
        self.expire_pending(now)

        updates: Dict[str, object] = {}
        suppressed = []
        for name in reported:
            if name in TELEMETRY_FIELDS:
                updates[name] = getattr(snapshot, name)
                continue
            param = Param(name)
            if param in self._model.pending:
                suppressed.append(name)
                continue
            updates[name] = getattr(snapshot, name)

        if suppressed:
            logger.debug("Kept local values for pending %s", ", ".join(sorted(suppressed)))

        self._model.state = self._model.state.merged(updates)
        if not self._model.connected:
            logger.info("Engine state received, connected")
        self._model.connected = True
        self._model.last_inbound = now
        self._notify()
        return self._model.state

    def drain(self, channel) -> int:
        """Apply everything queued on a state channel. Returns the count applied."""
        items = channel.drain()
        for inbound in items:
            self.apply(inbound)
        return len(items)

    def check_connection(self, now: Optional[float] = None) -> bool:
        """Drop the connected flag after a quiet period with no inbound state."""
        now = self.clock() if now is None else now
        last = self._model.last_inbound
        if self._model.connected and last is not None and now - last > self.connection_timeout:
            logger.warning("No engine state for %.1fs, running local-only", now - last)
            self._model.connected = False
            self._notify()
        return self._model.connected

    # ── Local mutation ───────────────────────────────────────────

    def adjust(self, param: Param, delta: float) -> bool:
        """Nudge a continuous parameter by ``delta`` scaled to its domain.

        Returns:
            Result of the send (False on transport failure).
        """
        spec = spec_for(param)
        if spec.kind != Kind.FLOAT:
            raise ValueError(f"{spec.param.value} is not a continuous parameter")

        current = self._model.state.get(spec.param)
        step = delta * spec.scale
        if spec.curve == Curve.LOG:
            value = adjust_logarithmic(current, step, spec.minimum, spec.maximum)
        else:
            value = adjust_linear(current, step, spec.minimum, spec.maximum)
        return self._commit(spec.param, value)

    def toggle(self, param: Param) -> bool:
        spec = spec_for(param)
        if spec.kind != Kind.BOOL:
            raise ValueError(f"{spec.param.value} is not a switch")
        return self._commit(spec.param, not self._model.state.get(spec.param))

    def set_discrete(self, param: Param, index: int) -> bool:
        """Select option ``index`` (wrapping) of a discrete control."""
        spec = spec_for(param)
        if not spec.is_discrete:
            raise ValueError(f"{spec.param.value} has no discrete options")
        return self._commit(spec.param, spec.options[index % len(spec.options)])

    def cycle(self, param: Param, step: int = 1) -> bool:
        spec = spec_for(param)
        if not spec.is_discrete:
            raise ValueError(f"{spec.param.value} has no discrete options")
        current = self._model.state.get(spec.param)
        index = spec.options.index(current) if current in spec.options else -step
        return self.set_discrete(spec.param, index + step)

    def set_value(self, param: Param, value) -> bool:
        """Set an absolute value, clamped to the registered domain."""
        spec = spec_for(param)
        if spec.kind == Kind.FLOAT:
            value = clamp(float(value), spec.minimum, spec.maximum)
        elif spec.kind == Kind.BOOL:
            value = bool(value)
        elif spec.is_discrete:
            if value not in spec.options:
                raise ValueError(f"{value!r} is not an option of {spec.param.value}")
        elif spec.kind == Kind.STRING_LIST:
            return self.set_order(value)
        return self._commit(spec.param, value)

    def set_normalized(self, param: Param, fraction: float) -> bool:
        """Set a continuous parameter from a 0..1 controller position."""
        spec = spec_for(param)
        if spec.kind != Kind.FLOAT:
            raise ValueError(f"{spec.param.value} is not a continuous parameter")
        return self._commit(spec.param, from_normalized(spec.param, fraction))

    # ── Effects chain ────────────────────────────────────────────

    def set_order(self, order: Sequence[str]) -> bool:
        """Replace the whole effects chain and send it as one payload."""
        return self._commit(Param.EFFECTS_ORDER, tuple(order))

    def swap_up(self, index: int) -> bool:
        """Move the effect at ``index`` one slot earlier."""
        order = list(self._model.state.effects_order)
        if not 0 < index < len(order):
            return False
        order[index - 1], order[index] = order[index], order[index - 1]
        return self.set_order(order)

    def swap_down(self, index: int) -> bool:
        """Move the effect at ``index`` one slot later."""
        order = list(self._model.state.effects_order)
        if not 0 <= index < len(order) - 1:
            return False
        order[index], order[index + 1] = order[index + 1], order[index]
        return self.set_order(order)

    def reset_order(self) -> bool:
        return self.set_order(DEFAULT_EFFECTS_ORDER)

    # ── Requests ─────────────────────────────────────────────────

    def request_sync(self) -> bool:
        """Ask the engine for a fresh full-state broadcast."""
        return self._send(codec.encode_sync())

    def request_order(self) -> bool:
        return self._send(codec.encode_order_request())

    # ── Internals ────────────────────────────────────────────────

    def _commit(self, param: Param, value) -> bool:
        spec = spec_for(param)
        if spec.kind == Kind.FLOAT and not math.isfinite(value):
            fallback = clamp(0.0, spec.minimum, spec.maximum)
            logger.warning("%s: non-finite value %r, using %s", param.value, value, fallback)
            value = fallback
        self._model.state = self._model.state.merged({param.value: value})
        self._model.pending[param] = self.clock()
        self._notify()
        return self._send(codec.encode(param, value))

    def _send(self, frame: codec.Frame) -> bool:
        if self.sender is None:
            return False
        return self.sender.send(frame)

    def _notify(self) -> None:
        snapshot = self._model.state
        for listener in list(self._listeners):
            listener(snapshot)
