import pytest
from fastapi.testclient import TestClient

from sensorlog.models import ConnectionState, ConnectionStatus, SensorReading
from sensorlog.routes import get_supervisor
from sensorlog.storage import ReadingStore
from main import app
from conftest import VALID_FRAME


class StubSupervisor:
    def __init__(self, store: ReadingStore, finds_device: bool = True) -> None:
        self.store = store
        self.finds_device = finds_device
        self.state = ConnectionState.DISCONNECTED
        self.message = "not connected"
        self.calls = []

    def connect(self) -> bool:
        self.calls.append("connect")
        if not self.finds_device:
            self.message = "no device found"
            return False
        self.state = ConnectionState.CONNECTED
        self.message = "connected on COM3"
        return True

    def disconnect(self) -> None:
        self.calls.append("disconnect")
        self.state = ConnectionState.DISCONNECTED
        self.message = "disconnected"

    def reconnect(self) -> bool:
        self.disconnect()
        return self.connect()

    def status(self) -> ConnectionStatus:
        port = "COM3" if self.state == ConnectionState.CONNECTED else None
        return ConnectionStatus(state=self.state, port=port, message=self.message)


@pytest.fixture
def stub(store):
    return StubSupervisor(store)


@pytest.fixture
def client(stub):
    app.dependency_overrides[get_supervisor] = lambda: stub
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "state": "disconnected"}


def test_connect_and_disconnect(client, stub):
    r = client.post("/connect")
    assert r.status_code == 200
    assert r.json()["state"] == "connected"
    assert r.json()["port"] == "COM3"

    r = client.post("/disconnect")
    assert r.status_code == 200
    assert r.json()["state"] == "disconnected"
    assert stub.calls == ["connect", "disconnect"]


def test_connect_without_device_returns_503(client, stub):
    stub.finds_device = False
    r = client.post("/connect")
    assert r.status_code == 503
    assert r.json()["detail"] == "no device found"


def test_reconnect(client, stub):
    r = client.post("/reconnect")
    assert r.status_code == 200
    assert stub.calls == ["disconnect", "connect"]


def test_readings_endpoints(client, store):
    r = client.get("/readings/latest")
    assert r.status_code == 404

    store.append(SensorReading.model_validate_json(VALID_FRAME))
    store.append(SensorReading.model_validate_json(VALID_FRAME.replace("22.5", "23.0")))

    r = client.get("/readings", params={"limit": 10})
    assert r.status_code == 200
    rows = r.json()
    assert [row["temperature"] for row in rows] == [23.0, 22.5]
    assert rows[0]["reading_date"] == "2024-01-01"

    r = client.get("/readings/latest")
    assert r.status_code == 200
    assert r.json()["temperature"] == 23.0
