from unittest import mock

import pytest
import requests
import serial
from django.core.management import call_command
from django.core.management.base import CommandError

from queues.display import DisplayBoardFeeder, board_settings, format_frame


def _feeder(session=None):
    port = mock.Mock()
    return DisplayBoardFeeder(1, "http://board.local/api/", port, session=session or mock.Mock()), port


def _response(payload):
    resp = mock.Mock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def test_format_frame():
    assert format_frame(15, 16) == b"15,16\n"
    assert format_frame(None, None) == b"0,0\n"


def test_board_settings_overrides(settings):
    settings.CLINICQUEUE_DISPLAY_BOARD = {"SERIAL_PORT": "/dev/ttyACM0"}
    conf = board_settings(BAUDRATE=115200, API_URL=None)
    assert conf["SERIAL_PORT"] == "/dev/ttyACM0"
    assert conf["BAUDRATE"] == 115200
    assert conf["API_URL"].endswith("/queues/api/current_number/")


class TestFeeder:
    def test_fetch_numbers(self):
        session = mock.Mock()
        session.get.return_value = _response(
            {"doctor_id": 1, "current": {"number": 7}, "next": None, "waiting_count": 0}
        )
        feeder, _ = _feeder(session)

        assert feeder.fetch_numbers() == (7, None)
        session.get.assert_called_once_with(
            "http://board.local/api/", params={"doctor_id": 1}, timeout=3.0
        )

    def test_fetch_failure(self):
        session = mock.Mock()
        session.get.side_effect = requests.ConnectionError("down")
        feeder, _ = _feeder(session)
        assert feeder.fetch_numbers() == (None, None)

    def test_only_changes_are_written(self):
        feeder, port = _feeder()
        assert feeder.push(1, 2) is True
        assert feeder.push(1, 2) is False
        assert feeder.push(2, 3) is True
        assert port.write.call_args_list == [mock.call(b"1,2\n"), mock.call(b"2,3\n")]

    def test_keeps_last_frame_while_api_is_down(self):
        session = mock.Mock()
        session.get.side_effect = [
            _response({"current": {"number": 4}, "next": {"number": 5}}),
            requests.Timeout("slow"),
        ]
        feeder, port = _feeder(session)

        assert feeder.tick() is True
        assert feeder.tick() is False
        port.write.assert_called_once_with(b"4,5\n")

    def test_run_stops_after_ticks(self):
        feeder, _ = _feeder()
        with mock.patch.object(feeder, "tick") as tick, mock.patch("queues.display.time.sleep") as sleep:
            feeder.run(0.5, max_ticks=3)
        assert tick.call_count == 3
        assert sleep.call_count == 2


class TestCommand:
    def test_serial_port_error(self):
        with mock.patch(
            "queues.management.commands.feed_display_board.open_port",
            side_effect=serial.SerialException("no such port"),
        ):
            with pytest.raises(CommandError):
                call_command("feed_display_board", "1", "--port", "COM9")

    def test_feeds_board(self):
        port = mock.Mock()
        with mock.patch(
            "queues.management.commands.feed_display_board.open_port", return_value=port
        ) as open_port, mock.patch.object(
            DisplayBoardFeeder, "fetch_numbers", return_value=(3, 4)
        ):
            call_command("feed_display_board", "1", "--port", "COM5", "--ticks", "1")

        open_port.assert_called_once_with("COM5", 9600)
        port.write.assert_called_once_with(b"3,4\n")
        port.close.assert_called_once()
