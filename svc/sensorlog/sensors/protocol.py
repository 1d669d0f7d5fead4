from __future__ import annotations
import json
from typing import Any, Dict

from pydantic import ValidationError

from ..errors import ParseError
from ..models import SensorReading

REQUEST_COMMAND: Dict[str, str] = {"command": "get_data"}

# Keys a response must carry to count as a reading frame during the handshake
HANDSHAKE_KEYS = ("temperature", "humidity")


class DeviceProtocol:
    """
    Line-delimited JSON protocol spoken by the sensor gateway.

    Request:  {"command":"get_data"} + CRLF
    Response: one JSON object per line with the reading fields. Lines that do
              not start with '{' are boot/debug chatter and are not frames.
    """

    def encode_request(self) -> str:
        return json.dumps(REQUEST_COMMAND, separators=(",", ":"))

    def is_protocol_line(self, line: str) -> bool:
        return line.rstrip("\r\n").startswith("{")

    def is_valid_reading_frame(self, line: str) -> bool:
        try:
            payload = json.loads(line)
        except ValueError:
            return False
        return isinstance(payload, dict) and all(k in payload for k in HANDSHAKE_KEYS)

    def parse_reading(self, line: str) -> SensorReading:
        payload = self._decode(line)
        try:
            return SensorReading.model_validate(payload)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ParseError(f"invalid reading frame ({fields}): {line!r}") from e

    def _decode(self, line: str) -> Dict[str, Any]:
        try:
            payload = json.loads(line)
        except ValueError as e:
            raise ParseError(f"malformed JSON frame: {line!r}") from e
        if not isinstance(payload, dict):
            raise ParseError(f"frame is not a JSON object: {line!r}")
        return payload
