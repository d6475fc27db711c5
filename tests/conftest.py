"""Shared fixtures: a fake serial port that records read/write ordering."""

from __future__ import annotations

import threading
import time

import pytest
import serial

from gridfan_mcp.transport.serial_connection import SerialConnection


class FakeSerial:
    """Stands in for ``serial.Serial``.

    Each write pops the next queued reply into the inbound buffer. Every
    write also records whether a read had started since the last input
    flush, so tests can assert the reader attached before the write.
    """

    def __init__(self, replies=None, fail_write=False, read_delay=0.002):
        self.replies = list(replies or [])
        self.fail_write = fail_write
        self.read_delay = read_delay
        self.written: list[bytes] = []
        self.write_after_read: list[bool] = []
        self.flushes = 0
        self.closed = False
        self.baudrate = None
        self._inbound = bytearray()
        self._lock = threading.Lock()
        self._read_started = threading.Event()

    def inject(self, data: bytes) -> None:
        with self._lock:
            self._inbound.extend(data)

    def read(self, size: int = 1) -> bytes:
        self._read_started.set()
        with self._lock:
            if self._inbound:
                chunk = bytes(self._inbound[:size])
                del self._inbound[:size]
                return chunk
        time.sleep(self.read_delay)
        return b""

    def write(self, data: bytes) -> int:
        self.write_after_read.append(self._read_started.wait(1.0))
        if self.fail_write:
            raise serial.SerialException("write failed")
        self.written.append(bytes(data))
        if self.replies:
            self.inject(self.replies.pop(0))
        return len(data)

    def flush(self) -> None:
        pass

    def reset_input_buffer(self) -> None:
        self.flushes += 1
        self._read_started.clear()
        with self._lock:
            self._inbound.clear()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def device_path(tmp_path):
    path = tmp_path / "ttyACM0"
    path.write_bytes(b"")
    return str(path)


@pytest.fixture
def make_connection(device_path):
    """Build an opened SerialConnection around a FakeSerial."""

    def _make(port: FakeSerial, timeout: float = 0.2) -> SerialConnection:
        conn = SerialConnection(
            device_path, timeout=timeout, serial_factory=lambda **kwargs: port
        )
        conn.open()
        return conn

    return _make
