"""MIDI controller detection and selection."""
import logging
import os
import sys
from typing import List, Optional, TYPE_CHECKING

import mido

if TYPE_CHECKING:
    from config_manager import ConfigManager

logger = logging.getLogger(__name__)


class MIDIDeviceManager:
    """Enumerates MIDI inputs and remembers which controller drives the surface."""

    def __init__(self, config_manager: 'ConfigManager' = None):
        self.config_manager = config_manager
        self.selected_device: Optional[str] = None
        self.last_error: Optional[str] = None

        if self.config_manager:
            saved_device = self.config_manager.get_selected_device()
            if saved_device and saved_device in self.get_input_devices():
                self.selected_device = saved_device

    def get_input_devices(self) -> List[str]:
        """List available MIDI input port names (empty on backend failure)."""
        try:
            # ALSA prints to stderr when the sequencer is missing
            stderr_backup = sys.stderr
            with open(os.devnull, 'w') as devnull:
                sys.stderr = devnull
                try:
                    devices = mido.get_input_names()
                finally:
                    sys.stderr = stderr_backup

            self.last_error = None
            return devices
        except Exception as e:
            error_msg = str(e).lower()
            if "no such file" in error_msg and "snd/seq" in error_msg:
                self.last_error = "ALSA sequencer not available. Run: sudo modprobe snd-seq"
            else:
                self.last_error = f"Error: {e}"
            logger.warning("MIDI enumeration failed: %s", self.last_error)
            return []

    def select_device(self, device_name: str) -> bool:
        """Select and persist a controller.

        Returns:
            True if the device exists and was selected.
        """
        if device_name not in self.get_input_devices():
            return False
        self.selected_device = device_name
        if self.config_manager:
            self.config_manager.set_selected_device(device_name)
        return True

    def resolve_device(self) -> Optional[str]:
        """Return the saved controller, else the first available port."""
        if self.selected_device:
            return self.selected_device
        devices = self.get_input_devices()
        return devices[0] if devices else None
