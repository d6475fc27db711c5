"""Serial connection to the fan controller.

The controller enumerates as a character device (usually ``/dev/ttyACM0``)
and talks 4800 baud 8N1, raw, with no echo. Replies have no framing, so
every exchange is told up front how many bytes to wait for.
"""

from __future__ import annotations

import logging
import os
import threading

import serial

from ..errors import ConfigurationFailed, DeviceUnavailable, TransmitFailure
from ..protocol.exchange import Exchange, Outcome

logger = logging.getLogger(__name__)

DEFAULT_DEVICE = "/dev/ttyACM0"
BAUD_RATE = 4800
EXCHANGE_TIMEOUT = 1.0  # seconds per exchange
POLL_INTERVAL = 0.01  # reader poll granularity
READ_SLICE = 0.05  # serial read timeout; bounds how long a stop request waits
WRITE_TIMEOUT = 1.0
ATTACH_TIMEOUT = 1.0


class _ReplyReader(threading.Thread):
    """Background read of exactly ``size`` bytes, stoppable between slices."""

    def __init__(self, port, size: int) -> None:
        super().__init__(name="gridfan-reader", daemon=True)
        self._port = port
        self._size = size
        self._buffer = bytearray()
        self._cancel = threading.Event()
        self.attached = threading.Event()
        self.error: Exception | None = None

    @property
    def data(self) -> bytes:
        return bytes(self._buffer)

    def run(self) -> None:
        self.attached.set()
        try:
            while len(self._buffer) < self._size and not self._cancel.is_set():
                chunk = self._port.read(self._size - len(self._buffer))
                if chunk:
                    self._buffer.extend(chunk)
        except (serial.SerialException, OSError) as e:
            self.error = e

    def cancel(self) -> None:
        self._cancel.set()


class SerialConnection:
    """Manages the serial session with the controller.

    Usage::

        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
        conn.configure_once()
        exchange = conn.exchange(b"\\xC0", 1)
        conn.close()
    """

    def __init__(
        self,
        path: str = DEFAULT_DEVICE,
        baudrate: int = BAUD_RATE,
        timeout: float = EXCHANGE_TIMEOUT,
        serial_factory=serial.Serial,
    ) -> None:
        self._path = path
        self._baudrate = baudrate
        self._timeout = timeout
        self._serial_factory = serial_factory
        self._port = None
        self._configured = False
        self._lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._path

    @property
    def connected(self) -> bool:
        return self._port is not None

    @property
    def configured(self) -> bool:
        return self._configured

    def __enter__(self) -> SerialConnection:
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def open(self) -> None:
        """Open the device for exclusive read/write access.

        Raises:
            DeviceUnavailable: If the path is missing, lacks read/write
                permission, or cannot be opened.
        """
        if self.connected:
            return

        if not os.path.exists(self._path):
            raise DeviceUnavailable(f"Device {self._path} does not exist")
        if not os.access(self._path, os.R_OK | os.W_OK):
            raise DeviceUnavailable(
                f"Device {self._path} is not readable and writable. "
                f"Check permissions (e.g. membership of the dialout group)."
            )

        try:
            self._port = self._serial_factory(
                port=self._path,
                baudrate=self._baudrate,
                timeout=READ_SLICE,
                write_timeout=WRITE_TIMEOUT,
                exclusive=True,
            )
        except (serial.SerialException, OSError, ValueError) as e:
            raise DeviceUnavailable(f"Could not open {self._path}: {e}") from e

        self._configured = False
        logger.info("Opened %s", self._path)

    def close(self) -> None:
        """Close the device. Safe to call more than once."""
        if self._port is None:
            return
        try:
            self._port.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("Error closing %s: %s", self._path, e)
        finally:
            self._port = None
            self._configured = False
            logger.info("Closed %s", self._path)

    def _require_port(self):
        if self._port is None:
            raise DeviceUnavailable(f"Device {self._path} is not open")
        return self._port

    def configure_once(self) -> None:
        """Apply the line discipline, once per session.

        Raises:
            ConfigurationFailed: If the port rejects the settings.
        """
        port = self._require_port()
        if self._configured:
            return

        try:
            port.baudrate = self._baudrate
            port.bytesize = serial.EIGHTBITS
            port.parity = serial.PARITY_NONE
            port.stopbits = serial.STOPBITS_ONE
            port.xonxoff = False
            port.rtscts = False
            port.dsrdtr = False
        except (serial.SerialException, ValueError, OSError) as e:
            raise ConfigurationFailed(
                f"Could not configure {self._path} for {self._baudrate} baud: {e}"
            ) from e

        self._configured = True
        logger.debug("Configured %s: %d 8N1 raw", self._path, self._baudrate)

    def flush_inbound(self) -> None:
        """Drop any stale bytes waiting on the read side."""
        port = self._require_port()
        try:
            port.reset_input_buffer()
        except (serial.SerialException, OSError) as e:
            self.close()
            raise DeviceUnavailable(f"Lost {self._path}: {e}") from e

    def write(self, data: bytes) -> int:
        """Write raw bytes to the device.

        Raises:
            TransmitFailure: If the write fails or is short.
        """
        port = self._require_port()
        try:
            written = port.write(data)
            port.flush()
        except (serial.SerialException, OSError) as e:
            raise TransmitFailure(f"Write to {self._path} failed: {e}") from e

        if written is not None and written != len(data):
            raise TransmitFailure(
                f"Short write to {self._path}: {written} of {len(data)} bytes"
            )
        logger.debug("TX %s", data.hex(" "))
        return len(data)

    def exchange(
        self,
        request: bytes,
        expected_length: int,
        timeout: float | None = None,
    ) -> Exchange:
        """Write ``request`` and read exactly ``expected_length`` reply bytes.

        The reader thread is started and confirmed attached before the
        request is written, so a fast reply cannot be missed. The wait is
        polled in ``POLL_INTERVAL`` slices up to ``timeout`` seconds.

        Returns:
            An :class:`Exchange`. A write failure wins over any read result;
            a short or missing reply is ``Outcome.TIMEOUT``.
        """
        if timeout is None:
            timeout = self._timeout

        with self._lock:
            self._require_port()
            self.flush_inbound()

            reader = _ReplyReader(self._port, expected_length)
            reader.start()
            if not reader.attached.wait(ATTACH_TIMEOUT):
                reader.cancel()
                reader.join()
                return Exchange(request, b"", Outcome.TIMEOUT, "reader did not start")

            try:
                self.write(request)
            except TransmitFailure as e:
                reader.cancel()
                reader.join()
                return Exchange(request, reader.data, Outcome.TRANSMIT_FAILURE, str(e))

            for _ in range(max(1, round(timeout / POLL_INTERVAL))):
                reader.join(POLL_INTERVAL)
                if not reader.is_alive():
                    break
            if reader.is_alive():
                reader.cancel()
                reader.join()

            data = reader.data
            logger.debug("RX %s", data.hex(" ") if data else "(nothing)")

            if reader.error is not None:
                logger.warning("Read from %s failed: %s", self._path, reader.error)
                return Exchange(request, data, Outcome.TIMEOUT, str(reader.error))
            if len(data) < expected_length:
                return Exchange(request, data, Outcome.TIMEOUT, "reply incomplete")
            return Exchange(request, data, Outcome.SUCCESS)
