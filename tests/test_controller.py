"""Tests for the fan control facade."""

from unittest.mock import MagicMock, call

import pytest

from gridfan_mcp.controller import FanController, resolve_fan_ids
from gridfan_mcp.errors import (
    DeviceUnavailable,
    InvalidFanId,
    InvalidReply,
    InvalidSpeed,
    ResponseTimeout,
    SyncFailed,
    TransmitFailure,
)
from gridfan_mcp.models.results import SyncResult, SyncState
from gridfan_mcp.protocol.exchange import Exchange, Outcome
from gridfan_mcp.protocol.parser import FanOutcome, PingStatus

from conftest import FakeSerial


def _controller(*exchanges: Exchange):
    conn = MagicMock()
    conn.exchange.side_effect = list(exchanges)
    return FanController(conn), conn


def _reply(data: bytes, outcome: Outcome = Outcome.SUCCESS) -> Exchange:
    return Exchange(b"", data, outcome)


# ─── read_fan ─────────────────────────────────────────────────────────

def test_read_fan_rpm():
    controller, conn = _controller(_reply(bytes.fromhex("C0 00 00 02 76")))
    telemetry = controller.read_fan(2)
    assert telemetry.fan_id == 2
    assert telemetry.rpm == 630
    conn.exchange.assert_called_once_with(bytes.fromhex("8A 02"), 5)


def test_read_fan_bad_prefix():
    controller, _ = _controller(_reply(bytes.fromhex("C0 00 01 02 76")))
    with pytest.raises(InvalidReply):
        controller.read_fan(1)


def test_read_fan_timeout():
    controller, _ = _controller(_reply(b"\xc0\x00", Outcome.TIMEOUT))
    with pytest.raises(ResponseTimeout):
        controller.read_fan(1)


def test_read_fan_transmit_failure():
    controller, _ = _controller(_reply(b"", Outcome.TRANSMIT_FAILURE))
    with pytest.raises(TransmitFailure):
        controller.read_fan(1)


@pytest.mark.parametrize("fan_id", [0, 7, -1])
def test_read_fan_invalid_id_no_io(fan_id):
    controller, conn = _controller()
    with pytest.raises(InvalidFanId):
        controller.read_fan(fan_id)
    conn.exchange.assert_not_called()


# ─── set_fan_speed ────────────────────────────────────────────────────

def test_set_fan_speed_payload():
    controller, conn = _controller(_reply(b"\x01"))
    result = controller.set_fan_speed({3}, 40)
    conn.exchange.assert_called_once_with(bytes.fromhex("44 03 C0 00 00 06 00"), 1)
    assert result.ok
    assert result.outcomes == {3: FanOutcome.OK}


def test_set_fan_speed_no_response():
    controller, _ = _controller(_reply(b"", Outcome.TIMEOUT))
    result = controller.set_fan_speed([3], 40)
    assert not result.ok
    assert result.outcomes[3] is FanOutcome.NO_RESPONSE


def test_set_fan_speed_invalid_reply():
    controller, _ = _controller(_reply(b"\x00"))
    result = controller.set_fan_speed([3], 40)
    assert result.outcomes[3] is FanOutcome.INVALID_REPLY
    assert result.failed_ids == [3]


def test_set_fan_speed_transmit_failure():
    controller, _ = _controller(_reply(b"", Outcome.TRANSMIT_FAILURE))
    result = controller.set_fan_speed([1], "off")
    assert result.outcomes[1] is FanOutcome.TRANSMIT_FAILURE


def test_set_fan_speed_batch_continues_after_failure():
    """A failing fan does not stop the rest of the batch."""
    controller, conn = _controller(
        _reply(b"\x01"),
        _reply(b"", Outcome.TIMEOUT),
        _reply(b"\x01"),
    )
    result = controller.set_fan_speed("1,2,3", 100)
    assert conn.exchange.call_count == 3
    assert conn.exchange.call_args_list == [
        call(bytes.fromhex("44 01 C0 00 00 0C 00"), 1),
        call(bytes.fromhex("44 02 C0 00 00 0C 00"), 1),
        call(bytes.fromhex("44 03 C0 00 00 0C 00"), 1),
    ]
    assert not result.ok
    assert result.failed_ids == [2]


def test_set_fan_speed_batch_survives_lost_device():
    """A device error on one fan is recorded and later fans are still tried."""
    conn = MagicMock()
    conn.exchange.side_effect = [
        _reply(b"\x01"),
        DeviceUnavailable("Lost /dev/ttyACM0"),
        _reply(b"\x01"),
    ]
    result = FanController(conn).set_fan_speed([1, 2, 3], 50)

    assert conn.exchange.call_count == 3
    assert result.outcomes == {
        1: FanOutcome.OK,
        2: FanOutcome.DEVICE_UNAVAILABLE,
        3: FanOutcome.OK,
    }
    assert result.failed_ids == [2]


def test_set_fan_speed_off():
    controller, conn = _controller(_reply(b"\x01"))
    controller.set_fan_speed(6, "off")
    conn.exchange.assert_called_once_with(bytes.fromhex("44 06 C0 00 00 00 00"), 1)


@pytest.mark.parametrize("percent", [37, 10, 101, "max"])
def test_set_fan_speed_invalid_percent_no_io(percent):
    controller, conn = _controller()
    with pytest.raises(InvalidSpeed):
        controller.set_fan_speed([1], percent)
    conn.exchange.assert_not_called()


def test_set_fan_speed_invalid_id_no_io():
    controller, conn = _controller()
    with pytest.raises(InvalidFanId):
        controller.set_fan_speed([1, 7], 40)
    conn.exchange.assert_not_called()


# ─── ping / init ──────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "exchange, expected",
    [
        (_reply(b"\x21"), PingStatus.OK),
        (_reply(b"\x18"), PingStatus.UNEXPECTED_REPLY),
        (_reply(b"\x02"), PingStatus.UNEXPECTED_REPLY),
        (_reply(b"\x7f"), PingStatus.UNEXPECTED_REPLY),
        (_reply(b"", Outcome.TIMEOUT), PingStatus.TIMEOUT),
        (_reply(b"", Outcome.TRANSMIT_FAILURE), PingStatus.TRANSMIT_FAILURE),
    ],
)
def test_ping(exchange, expected):
    controller, conn = _controller(exchange)
    assert controller.ping() is expected
    conn.exchange.assert_called_once_with(b"\xc0", 1)


def test_init_raises_when_sync_fails():
    controller, _ = _controller()
    sync = MagicMock()
    sync.run.return_value = SyncResult(state=SyncState.FAILED, attempts=30)
    with pytest.raises(SyncFailed):
        controller.init(synchronizer=sync)


def test_init_returns_result():
    controller, _ = _controller()
    sync = MagicMock()
    sync.run.return_value = SyncResult(state=SyncState.SYNCED, attempts=2)
    assert controller.init(synchronizer=sync).attempts == 2


# ─── resolve_fan_ids ──────────────────────────────────────────────────

def test_resolve_fan_ids():
    assert resolve_fan_ids("all") == [1, 2, 3, 4, 5, 6]
    assert resolve_fan_ids("3,1, 3") == [1, 3]
    assert resolve_fan_ids(5) == [5]
    assert resolve_fan_ids(["2", 4]) == [2, 4]


@pytest.mark.parametrize("selection", ["", "0", "1,x", [], [1, 9]])
def test_resolve_fan_ids_rejects(selection):
    with pytest.raises(InvalidFanId):
        resolve_fan_ids(selection)


# ─── over a serial connection ─────────────────────────────────────────

def test_read_fan_over_serial(make_connection):
    port = FakeSerial(replies=[bytes.fromhex("C0 00 00 02 76")])
    controller = FanController(make_connection(port))
    assert controller.read_fan(1).rpm == 630
    assert port.written == [bytes.fromhex("8A 01")]


def test_set_fan_speed_over_serial(make_connection):
    port = FakeSerial(replies=[b"\x01", b"\x01"])
    controller = FanController(make_connection(port))
    result = controller.set_fan_speed([1, 2], 25)
    assert result.ok
    assert port.written[0] == bytes.fromhex("44 01 C0 00 00 04 50")
