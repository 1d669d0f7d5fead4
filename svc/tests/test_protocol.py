import json

import pytest

from sensorlog.errors import ParseError
from sensorlog.sensors.protocol import DeviceProtocol
from conftest import VALID_FRAME


protocol = DeviceProtocol()


def test_request_frame_is_fixed_command():
    assert protocol.encode_request() == '{"command":"get_data"}'


@pytest.mark.parametrize(
    "line,expected",
    [
        (VALID_FRAME, True),
        ('  {"temperature": 1}', False),
        ('{"temperature": 1}\r', True),
        ("ESP32 booting...", False),
        ("", False),
        ("[1, 2, 3]", False),
    ],
)
def test_is_protocol_line(line, expected):
    assert protocol.is_protocol_line(line) is expected


def test_handshake_accepts_minimal_frame():
    assert protocol.is_valid_reading_frame('{"temperature": 21.0, "humidity": 40}')


@pytest.mark.parametrize(
    "line",
    [
        '{"humidity": 40}',
        '{"temperature": 21.0}',
        '{"status": "ok"}',
        "not json",
        '{"temperature": 21.0, "humidity"',
        '[{"temperature": 1, "humidity": 2}]',
    ],
)
def test_handshake_rejects_frames_without_temperature_and_humidity(line):
    assert not protocol.is_valid_reading_frame(line)


def test_parse_camel_case_frame():
    reading = protocol.parse_reading(VALID_FRAME)
    assert reading.temperature == 22.5
    assert reading.humidity == 41.0
    assert reading.pressure == 1009.2
    assert reading.air_quality == 50
    assert reading.light_level == 300
    assert reading.date == "2024-01-01"
    assert reading.time == "10:00:00"
    assert reading.ip_address is None
    assert reading.wifi_status is None
    assert reading.ntp_sync is None


def test_parse_snake_case_frame_with_optionals():
    frame = json.dumps(
        {
            "temperature": 19.0,
            "humidity": 55.5,
            "pressure": 998.0,
            "air_quality": 12,
            "light_level": 5,
            "date": "2024-02-02",
            "time": "23:00:01",
            "ip_address": "10.0.0.7",
            "wifi_status": "connected",
            "ntp_sync": "synced",
        }
    )
    reading = protocol.parse_reading(frame)
    assert reading.air_quality == 12
    assert reading.light_level == 5
    assert reading.ip_address == "10.0.0.7"
    assert reading.wifi_status == "connected"
    assert reading.ntp_sync == "synced"


def test_parsed_reading_is_immutable():
    reading = protocol.parse_reading(VALID_FRAME)
    with pytest.raises(Exception):
        reading.temperature = 0.0


def test_parse_rejects_malformed_json():
    with pytest.raises(ParseError):
        protocol.parse_reading('{"temperature": 22.5,')


def test_parse_rejects_missing_required_field():
    frame = json.loads(VALID_FRAME)
    del frame["pressure"]
    with pytest.raises(ParseError, match="pressure"):
        protocol.parse_reading(json.dumps(frame))


def test_parse_rejects_wrong_type():
    frame = json.loads(VALID_FRAME)
    frame["temperature"] = "hot"
    with pytest.raises(ParseError):
        protocol.parse_reading(json.dumps(frame))


def test_parse_rejects_non_object():
    with pytest.raises(ParseError):
        protocol.parse_reading("[]")
