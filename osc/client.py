"""Fire-and-forget OSC sender towards the effects engine."""
import logging
from typing import Optional

from pythonosc.udp_client import UDPClient

from osc.codec import Frame, to_message

logger = logging.getLogger(__name__)


class OscSender:
    """Sends one datagram per frame. Never blocks, never retries."""

    def __init__(self, host: str = "127.0.0.1", port: int = 57120):
        self.host = host
        self.port = port
        self.last_error: Optional[str] = None
        self._client: Optional[UDPClient] = None
        self.sent_count = 0

    def _ensure_client(self) -> Optional[UDPClient]:
        if self._client is None:
            try:
                self._client = UDPClient(self.host, self.port)
            except (OSError, ValueError) as e:
                self.last_error = f"Cannot resolve {self.host}:{self.port}: {e}"
                logger.error(self.last_error)
                return None
        return self._client

    def send(self, frame: Frame) -> bool:
        """Send a frame.

        Args:
            frame: Encoded frame to send.

        Returns:
            True if the datagram left the socket, False otherwise. A peer that
            is not listening still counts as sent.
        """
        client = self._ensure_client()
        if client is None:
            return False
        try:
            client.send(to_message(frame))
        except (OSError, ValueError) as e:
            self.last_error = f"Send to {frame.address} failed: {e}"
            logger.error(self.last_error)
            return False
        self.sent_count += 1
        self.last_error = None
        return True

    def close(self):
        """Drop the client; its socket is released with it."""
        self._client = None
