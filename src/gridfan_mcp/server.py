"""MCP server entry point for the serial fan controller.

Exposes fan telemetry and speed control as tools via the Model Context
Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import atexit
import json
import logging
import os
import signal
import sys
from typing import Any

from mcp.server.fastmcp import FastMCP

from .controller import FanController, resolve_fan_ids
from .errors import ExitStatus, FanControllerError
from .models.speed import FanSpeed
from .protocol.commands import COMMAND_TABLE
from .protocol.parser import PingStatus
from .transport.serial_connection import DEFAULT_DEVICE, SerialConnection

logger = logging.getLogger(__name__)

DEVICE_ENV = "GRIDFAN_DEVICE"
LOG_LEVEL_ENV = "GRIDFAN_LOG_LEVEL"

mcp = FastMCP("gridfan")

# Global connection state
_connection: SerialConnection | None = None
_controller: FanController | None = None


def _default_device() -> str:
    return os.environ.get(DEVICE_ENV, DEFAULT_DEVICE)


def _get_controller() -> FanController:
    """Get the active controller, raising if not connected."""
    if _controller is None or _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _controller


def _error(exc: FanControllerError) -> dict[str, Any]:
    return {"error": str(exc), "status": exc.exit_status.name}


def _close_connection() -> None:
    global _connection, _controller
    if _connection is not None:
        _connection.close()
    _connection = None
    _controller = None


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(device: str | None = None) -> dict[str, Any]:
    """Open the fan controller's serial device and apply line settings.

    Args:
        device: Device path. Defaults to $GRIDFAN_DEVICE or /dev/ttyACM0.
    """
    global _connection, _controller
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "device": _connection.path,
        }

    connection = SerialConnection(device or _default_device())
    try:
        connection.open()
        connection.configure_once()
    except FanControllerError as e:
        connection.close()
        return _error(e)

    _connection = connection
    _controller = FanController(connection)
    return {"connected": True, "device": connection.path}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial device."""
    _close_connection()
    return {"disconnected": True}


@mcp.tool()
def ping() -> dict[str, Any]:
    """Send a single liveness check (0xC0) and report the outcome."""
    try:
        status = _get_controller().ping()
    except FanControllerError as e:
        return _error(e)

    statuses = {
        PingStatus.OK: ExitStatus.SUCCESS,
        PingStatus.TIMEOUT: ExitStatus.TIMEOUT,
        PingStatus.TRANSMIT_FAILURE: ExitStatus.TRANSMIT_FAILURE,
        PingStatus.UNEXPECTED_REPLY: ExitStatus.INVALID_REPLY,
    }
    return {
        "alive": status is PingStatus.OK,
        "result": status.value,
        "status": statuses[status].name,
    }


@mcp.tool()
def init() -> dict[str, Any]:
    """Synchronize with the controller after power-up.

    Knocks and pings repeatedly (up to 30 cycles) until the device
    answers the liveness check correctly.
    """
    controller = _get_controller()
    progress: list[dict[str, Any]] = []

    def on_attempt(attempt: int, status: PingStatus) -> None:
        progress.append({"attempt": attempt, "result": status.value})

    try:
        result = controller.init(on_attempt)
    except FanControllerError as e:
        response = _error(e)
        response["attempts"] = progress
        return response

    response = result.to_dict()
    response["status"] = ExitStatus.SUCCESS.name
    return response


# ─── FAN TOOLS ────────────────────────────────────────────────────────

@mcp.tool()
def read_fan(fan: int) -> dict[str, Any]:
    """Read the current RPM of one fan.

    Args:
        fan: Fan channel (1-6).
    """
    try:
        telemetry = _get_controller().read_fan(fan)
    except FanControllerError as e:
        return _error(e)
    return telemetry.to_dict()


@mcp.tool()
def read_fans(fans: str = "all") -> dict[str, Any]:
    """Read RPM for several fans.

    Args:
        fans: "all" or a comma separated list of fan channels, e.g. "1,3".
    """
    controller = _get_controller()
    try:
        ids = resolve_fan_ids(fans)
    except FanControllerError as e:
        return _error(e)

    readings: list[dict[str, Any]] = []
    for fan_id in ids:
        try:
            readings.append(controller.read_fan(fan_id).to_dict())
        except FanControllerError as e:
            reading = _error(e)
            reading["fan"] = fan_id
            readings.append(reading)
    return {"fans": readings}


@mcp.tool()
def set_fan_speed(fans: str, speed: str) -> dict[str, Any]:
    """Set the speed of one or more fans.

    Args:
        fans: "all" or a comma separated list of fan channels, e.g. "1,3".
        speed: "off", 0, or 20-100 in steps of 5 (percent).
    """
    controller = _get_controller()
    try:
        result = controller.set_fan_speed(fans, speed)
    except FanControllerError as e:
        return _error(e)

    return result.to_dict()


@mcp.tool()
def list_speed_levels() -> dict[str, Any]:
    """List the valid fan speed levels and their voltage codes."""
    return {"levels": [s.to_dict() for s in sorted(FanSpeed)]}


@mcp.tool()
def send_raw_command(opcode: str, payload: str = "") -> dict[str, Any]:
    """Send a raw command from the command table and return the reply bytes.

    Args:
        opcode: Opcode as two hex digits, e.g. "8A".
        payload: Remaining request bytes as hex, e.g. "01".
    """
    controller = _get_controller()
    try:
        exchange = controller.engine.send(opcode, payload)
    except FanControllerError as e:
        return _error(e)

    return {
        "request": exchange.request.hex(" "),
        "response": exchange.response.hex(" "),
        "outcome": exchange.outcome.value,
    }


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("gridfan://device/status")
def resource_device_status() -> str:
    """Connection state and device path."""
    connected = _connection is not None and _connection.connected
    return json.dumps({
        "connected": connected,
        "device": _connection.path if connected else _default_device(),
    })


@mcp.resource("gridfan://speed-levels")
def resource_speed_levels() -> str:
    """Valid fan speed levels."""
    return json.dumps(list_speed_levels())


@mcp.resource("gridfan://commands")
def resource_commands() -> str:
    """The command table: opcode and request/reply sizes."""
    commands = [
        {
            "opcode": f"{d.opcode:02X}",
            "name": d.name,
            "input_length": d.input_length,
            "output_length": d.output_length,
        }
        for d in COMMAND_TABLE.values()
    ]
    return json.dumps({"commands": commands})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def _handle_signal(signum, frame) -> None:
    logger.info("Received signal %d, closing device", signum)
    _close_connection()
    sys.exit(128 + signum)


def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=os.environ.get(LOG_LEVEL_ENV, "INFO").upper())
    atexit.register(_close_connection)
    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
