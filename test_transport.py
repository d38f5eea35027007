#!/usr/bin/env python3
"""ABOUTME: Tests for the OSC transport: bounded channel, receiver shadow state and sender.
ABOUTME: Includes a loopback UDP check of the real listener thread."""
import socket
import sys
import threading
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))

from control.registry import Param, STATE_SCHEMA
from control.state import InboundState
from osc import client as osc_client
from osc import codec
from osc.client import OscSender
from osc.server import OscReceiver, StateChannel


def _free_udp_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


# ── StateChannel ─────────────────────────────────────────────────

def test_channel_never_blocks_when_full():
    channel = StateChannel(maxsize=10)
    done = threading.Event()

    def producer():
        for i in range(100):
            channel.publish(i)
        done.set()

    thread = threading.Thread(target=producer, daemon=True)
    thread.start()
    assert done.wait(timeout=1.0), "producer blocked on a full channel"

    # Drop-newest: the first ten survive
    assert channel.drain() == list(range(10))
    assert channel.dropped == 90


def test_channel_publish_reports_drops():
    channel = StateChannel(maxsize=1)
    assert channel.publish("a") is True
    assert channel.publish("b") is False
    assert channel.latest() == "a"
    assert channel.latest() is None


# ── Receiver dispatch ────────────────────────────────────────────

def test_receiver_merges_and_publishes_snapshot():
    receiver = OscReceiver(port=0)
    assert receiver.handle_message("/chroma/gain", 1.5)

    inbound = receiver.channel.latest()
    assert isinstance(inbound, InboundState)
    assert inbound.snapshot.gain == pytest.approx(1.5)
    assert inbound.reported == frozenset({"gain"})


def test_receiver_accumulates_reported_fields():
    receiver = OscReceiver(port=0)
    receiver.handle_message("/chroma/spectrum", *[0.5] * 8)
    receiver.handle_message("/chroma/effectsOrder", "delay", "filter")

    current = receiver.current_state()
    assert current.reported == frozenset({"spectrum", "effects_order"})
    assert current.snapshot.spectrum == (0.5,) * 8
    assert current.snapshot.effects_order == ("delay", "filter")
    assert len(receiver.channel.drain()) == 2


def test_receiver_discards_short_full_state():
    receiver = OscReceiver(port=0)
    assert receiver.handle_message("/chroma/state", *[0.5] * 20) is False
    assert receiver.channel.drain() == []
    assert receiver.frames_discarded == 1
    assert receiver.current_state().reported == frozenset()


def test_receiver_dispatch_table_covers_protocol():
    receiver = OscReceiver(port=0)
    message = codec.to_message(codec.Frame("/chroma/spectrum", (0.1,) * 8, "f" * 8))
    handlers = receiver.dispatcher.handlers_for_address(message.address)
    assert [h.callback for h in handlers] == [receiver.handle_message]


def test_receiver_shadow_is_thread_safe():
    receiver = OscReceiver(port=0, channel=StateChannel(maxsize=10))

    def burst(value):
        for _ in range(200):
            receiver.handle_message("/chroma/dryWet", value)
            receiver.handle_message("/chroma/spectrum", *[value] * 8)
            receiver.handle_message("/chroma/waveform", value)

    threads = [threading.Thread(target=burst, args=(v,)) for v in (0.25, 0.75)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert receiver.frames_received == 800
    assert receiver.frames_discarded == 400
    snapshot = receiver.current_state().snapshot
    assert snapshot.dry_wet in (0.25, 0.75)
    assert len(set(snapshot.spectrum)) == 1


def test_loopback_state_broadcast_reaches_channel():
    receiver = OscReceiver("127.0.0.1", _free_udp_port())
    assert receiver.start()
    try:
        host, port = receiver.server_address[:2]
        sender = OscSender(host, port)
        args = [0.0] * len(STATE_SCHEMA)
        args[0] = 0.75
        args[18] = "pronounced"
        types = "".join("s" if isinstance(a, str) else "f" for a in args)
        assert sender.send(codec.Frame("/chroma/state", tuple(args), types))

        assert _wait_for(lambda: receiver.channel.qsize() > 0)
        inbound = receiver.channel.latest()
        assert inbound.snapshot.gain == pytest.approx(0.75)
        assert inbound.snapshot.grain_intensity == "pronounced"
        assert Param.GAIN.value in inbound.reported
        sender.close()
    finally:
        receiver.stop()
    assert not receiver.is_running()


# ── Sender ───────────────────────────────────────────────────────

def test_send_to_silent_peer_still_succeeds():
    sender = OscSender("127.0.0.1", _free_udp_port())
    assert sender.send(codec.encode(Param.GAIN, 0.6)) is True
    assert sender.last_error is None
    sender.close()


def test_sender_reopens_after_close():
    sender = OscSender("127.0.0.1", _free_udp_port())
    assert sender.send(codec.encode_sync())
    sender.close()
    assert sender.send(codec.encode_sync())
    assert sender.sent_count == 2
    sender.close()


def test_unresolvable_destination_is_reported_not_raised(monkeypatch):
    def broken_client(*args, **kwargs):
        raise OSError("Name or service not known")

    monkeypatch.setattr(osc_client, "UDPClient", broken_client)
    sender = OscSender("nowhere.invalid", 57120)
    assert sender.send(codec.encode_sync()) is False
    assert "nowhere.invalid" in sender.last_error
