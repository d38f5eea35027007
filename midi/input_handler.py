"""ABOUTME: Maps hardware MIDI controls onto reconciliation engine mutations.
ABOUTME: Polled from the UI tick so every mutation stays on the consumer thread."""
import logging
from typing import Dict, Optional, TYPE_CHECKING

import mido

from control.registry import Param

if TYPE_CHECKING:
    from control.engine import ReconciliationEngine

logger = logging.getLogger(__name__)


class MIDIInputHandler:
    """Reads a MIDI input port and routes CC/note messages to the engine."""

    def __init__(self, engine: 'ReconciliationEngine',
                 cc_map: Optional[Dict[int, Param]] = None,
                 note_map: Optional[Dict[int, str]] = None):
        self.engine = engine
        self.cc_map: Dict[int, Param] = dict(cc_map or {})
        self.note_map: Dict[int, str] = dict(note_map or {})
        self.port: Optional[mido.ports.BaseInput] = None
        self.port_name: Optional[str] = None

    def open_device(self, device_name: str) -> bool:
        """Open a MIDI input device.

        Returns:
            True if the port opened, False otherwise.
        """
        try:
            self.close_device()
            self.port = mido.open_input(device_name)
            self.port_name = device_name
            logger.info("MIDI input open: %s", device_name)
            return True
        except (OSError, IOError, ValueError) as e:
            logger.warning("Error opening MIDI device %r: %s", device_name, e)
            return False

    def close_device(self):
        if self.port:
            try:
                self.port.close()
            except (OSError, IOError) as e:
                logger.warning("Error closing MIDI device: %s", e)
            finally:
                self.port = None
                self.port_name = None

    def is_device_open(self) -> bool:
        return self.port is not None

    def poll_messages(self) -> int:
        """Handle every pending message without blocking.

        Returns:
            Number of messages that changed a parameter.
        """
        if not self.port:
            return 0

        handled = 0
        try:
            for msg in self.port.iter_pending():
                if self.handle_message(msg):
                    handled += 1
        except (OSError, IOError) as e:
            logger.warning("Error polling MIDI messages: %s", e)
        return handled

    def handle_message(self, msg: mido.Message) -> bool:
        if msg.type == 'control_change':
            return self._handle_cc(msg.control, msg.value)
        if msg.type == 'note_on' and msg.velocity > 0:
            return self._handle_note_on(msg.note)
        return False

    def _handle_cc(self, control: int, value: int) -> bool:
        param = self.cc_map.get(control)
        if param is None:
            return False
        self.engine.set_normalized(param, value / 127.0)
        return True

    def _handle_note_on(self, note: int) -> bool:
        action = self.note_map.get(note)
        if action is None:
            return False
        kind, _, arg = action.partition(":")
        if kind == "toggle":
            self.engine.toggle(Param(arg))
        elif kind == "blend_mode":
            self.engine.set_discrete(Param.BLEND_MODE, int(arg))
        else:
            logger.debug("Unhandled note action %r", action)
            return False
        return True
