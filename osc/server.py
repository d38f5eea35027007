"""ABOUTME: OSC listener for engine state broadcasts and the bounded channel it feeds.
ABOUTME: Merges inbound fragments into a locked shadow state and publishes immutable snapshots."""
import logging
import queue
import threading
from typing import Any, FrozenSet, List, Optional, Tuple

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_server import BlockingOSCUDPServer

from control.registry import (
    ADDRESS_TO_PARAM,
    EFFECTS_ORDER_ADDRESS,
    SPECTRUM_ADDRESS,
    STATE_ADDRESS,
    WAVEFORM_ADDRESS,
)
from control.state import InboundState, StateSnapshot
from osc import codec

logger = logging.getLogger(__name__)

# Sized for ~30 Hz updates
STATE_CHANNEL_SIZE = 10


class StateChannel:
    """Bounded, non-blocking hand-off from the receive thread to the consumer.

    Overflow policy is drop-newest: when full, the incoming item is discarded
    and the queued ones stay.
    """

    def __init__(self, maxsize: int = STATE_CHANNEL_SIZE):
        self.maxsize = maxsize
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, item: Any) -> bool:
        """Offer an item (never blocks).

        Returns:
            True if queued, False if the channel was full and the item dropped.
        """
        try:
            self._queue.put_nowait(item)
            return True
        except queue.Full:
            self.dropped += 1
            return False

    def drain(self) -> List[Any]:
        """Take every queued item without waiting."""
        items = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return items

    def latest(self) -> Optional[Any]:
        """Drain and keep only the most recent item."""
        items = self.drain()
        return items[-1] if items else None

    def clear(self) -> None:
        self.drain()

    def qsize(self) -> int:
        return self._queue.qsize()


class OscReceiver:
    """Long-running listener owning the shadow copy of engine state."""

    def __init__(self, host: str = "127.0.0.1", port: int = 9000,
                 channel: Optional[StateChannel] = None):
        self.host = host
        self.port = port
        self.channel = channel if channel is not None else StateChannel()
        self._lock = threading.Lock()
        self._shadow = StateSnapshot()
        self._reported: FrozenSet[str] = frozenset()
        self.frames_received = 0
        self.frames_discarded = 0

        self.dispatcher = Dispatcher()
        for address in self._addresses():
            self.dispatcher.map(address, self.handle_message)
        self.dispatcher.set_default_handler(self._handle_unknown)

        self._server: Optional[BlockingOSCUDPServer] = None
        self._thread: Optional[threading.Thread] = None

    @staticmethod
    def _addresses() -> List[str]:
        addresses = [STATE_ADDRESS, SPECTRUM_ADDRESS, WAVEFORM_ADDRESS, EFFECTS_ORDER_ADDRESS]
        addresses.extend(a for a in ADDRESS_TO_PARAM if a not in addresses)
        return addresses

    # ── Dispatch ─────────────────────────────────────────────────

    def handle_message(self, address: str, *args) -> bool:
        """Decode one frame, merge it into the shadow and publish.

        Returns:
            True if the frame decoded and a snapshot was offered to the channel.
        """
        fragment = codec.decode(address, args)
        if fragment is None:
            with self._lock:
                self.frames_discarded += 1
            return False

        with self._lock:
            self._shadow = self._shadow.merged(fragment)
            self._reported = self._reported | frozenset(fragment)
            self.frames_received += 1
            inbound = InboundState(self._shadow, self._reported)

        if not self.channel.publish(inbound):
            logger.debug("State channel full, dropped update from %s", address)
        return True

    def _handle_unknown(self, address: str, *args):
        logger.debug("No handler for %s (%d args)", address, len(args))

    def current_state(self) -> InboundState:
        """Immutable copy of everything heard so far."""
        with self._lock:
            return InboundState(self._shadow, self._reported)

    # ── Lifecycle ────────────────────────────────────────────────

    @property
    def server_address(self) -> Optional[Tuple[str, int]]:
        if self._server is None:
            return None
        return self._server.server_address

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Bind the UDP socket and serve on a daemon thread.

        Returns:
            True if listening, False if the port could not be bound.
        """
        if self.is_running():
            return True
        try:
            self._server = BlockingOSCUDPServer((self.host, self.port), self.dispatcher)
        except OSError as e:
            logger.error("Cannot listen on %s:%d: %s", self.host, self.port, e)
            self._server = None
            return False

        self._thread = threading.Thread(
            target=self._server.serve_forever, name="osc-receiver", daemon=True
        )
        self._thread.start()
        logger.info("Listening for engine state on %s:%d", *self._server.server_address[:2])
        return True

    def stop(self) -> None:
        """Stop serving. Queued snapshots are left for the consumer."""
        if self._server is None:
            return
        try:
            self._server.shutdown()
            self._server.server_close()
        except OSError as e:
            logger.warning("Error closing OSC receiver: %s", e)
        finally:
            if self._thread is not None:
                self._thread.join(timeout=1.0)
            self._server = None
            self._thread = None
