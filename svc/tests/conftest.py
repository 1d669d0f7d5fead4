import json
import threading
import time
from collections import deque
from typing import Dict, List, Optional

import pytest

from sensorlog.errors import StorageError, TransportError
from sensorlog.storage import ReadingStore, StorageSchema


VALID_FRAME = json.dumps(
    {
        "temperature": 22.5,
        "humidity": 41.0,
        "pressure": 1009.2,
        "airQuality": 50,
        "lightLevel": 300,
        "date": "2024-01-01",
        "time": "10:00:00",
    }
)


class FakeTransport:
    """In-memory stand-in for a serial port."""

    def __init__(self, name: str, replies: Optional[List[str]] = None, fail_on: Optional[str] = None) -> None:
        self.name = name
        self.replies = list(replies or [])
        self.fail_on = fail_on
        self.inbound: deque = deque()
        self.writes: List[str] = []
        self.closed = False
        self.close_calls = 0
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return not self.closed

    def _check(self, op: str) -> None:
        if self.fail_on == op:
            raise TransportError(self.name, f"{op} failed")
        if self.closed:
            raise TransportError(self.name, "port is closed")

    def feed(self, *lines: str) -> None:
        with self._lock:
            self.inbound.extend(lines)

    def reset_buffers(self) -> None:
        self._check("reset")
        with self._lock:
            self.inbound.clear()

    def write_line(self, text: str) -> None:
        self._check("write")
        with self._lock:
            self.writes.append(text)
            # Each request releases the next canned reply
            if self.replies:
                self.inbound.append(self.replies.pop(0))

    def bytes_waiting(self) -> int:
        self._check("bytes_waiting")
        with self._lock:
            return sum(len(line) + 2 for line in self.inbound)

    def read_line(self) -> str:
        self._check("read")
        with self._lock:
            return self.inbound.popleft() if self.inbound else ""

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakePorts:
    """Opener that hands out FakeTransports and records which ports were opened."""

    def __init__(self, transports: Dict[str, FakeTransport], open_errors: Optional[Dict[str, str]] = None) -> None:
        self.transports = transports
        self.open_errors = open_errors or {}
        self.opened: List[str] = []

    def list(self) -> List[str]:
        return list(self.transports)

    def open(self, port: str) -> FakeTransport:
        self.opened.append(port)
        if port in self.open_errors:
            raise TransportError(port, self.open_errors[port])
        return self.transports[port]


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingStore:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.readings = []

    def append(self, reading) -> int:
        if self.fail:
            raise StorageError("disk full")
        self.readings.append(reading)
        return len(self.readings)


def wait_until(predicate, timeout: float = 2.0, step: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(step)
    return predicate()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "sensor_data.db")


@pytest.fixture
def backup_dir(tmp_path):
    path = tmp_path / "backups"
    path.mkdir()
    return str(path)


@pytest.fixture
def store(db_path, backup_dir):
    s = ReadingStore(db_path=db_path, schema=StorageSchema(db_path=db_path, backup_dir=backup_dir))
    s.open()
    yield s
    s.close()
