from __future__ import annotations
import logging
import threading
from typing import Optional, Protocol

from ..config import REQUEST_INTERVAL_S, DISCONNECT_JOIN_S, RESPONSE_POLL_S
from ..errors import ParseError, StorageError, TransportError
from ..models import ConnectionState, SensorReading
from .interface import Transport
from .protocol import DeviceProtocol


class ReadingSink(Protocol):
    def append(self, reading: SensorReading) -> int:
        ...


class PollingSession:
    """
    Owns one confirmed connection until disconnect().

    Two daemon threads share the open transport:
      - requester: writes a get_data frame every request_interval_s
      - listener:  reads inbound lines and persists parsed readings

    They coordinate only through the _shutdown event. CONNECTED -> DISCONNECTED
    is one-way; reconnecting means building a new session.
    """

    def __init__(
        self,
        transport: Transport,
        store: ReadingSink,
        protocol: Optional[DeviceProtocol] = None,
        request_interval_s: float = REQUEST_INTERVAL_S,
        idle_poll_s: float = RESPONSE_POLL_S,
        join_timeout_s: float = DISCONNECT_JOIN_S,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.transport = transport
        self.store = store
        self.protocol = protocol or DeviceProtocol()
        self.request_interval_s = request_interval_s
        self.idle_poll_s = idle_poll_s
        self.join_timeout_s = join_timeout_s
        self.log = log or logging.getLogger(__name__)

        self._shutdown = threading.Event()
        # Held across "check shutdown + write" so disconnect() cannot interleave
        self._write_lock = threading.Lock()
        self._started = False
        self._requester: Optional[threading.Thread] = None
        self._listener: Optional[threading.Thread] = None

        self.readings_persisted = 0
        self.frames_dropped = 0
        self.last_reading: Optional[SensorReading] = None

    @property
    def port(self) -> str:
        return self.transport.name

    @property
    def state(self) -> ConnectionState:
        if self._started and not self._shutdown.is_set():
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    def start(self) -> None:
        if self._started:
            raise RuntimeError("a polling session can only be started once")
        self._started = True

        self._listener = threading.Thread(
            target=self._listen_loop, name=f"listener-{self.port}", daemon=True
        )
        self._requester = threading.Thread(
            target=self._request_loop, name=f"requester-{self.port}", daemon=True
        )
        self._listener.start()
        self._requester.start()
        self.log.info(f"Polling session started on {self.port} (every {self.request_interval_s}s)")

    def disconnect(self) -> None:
        with self._write_lock:
            already_down = self._shutdown.is_set()
            self._shutdown.set()

        if self.transport.is_open:
            self.transport.close()
            self.log.info(f"=== Connection to {self.port} closed ===")
        elif not already_down:
            self.log.info(f"Session on {self.port} stopped")

        current = threading.current_thread()
        for worker in (self._requester, self._listener):
            if worker is not None and worker is not current:
                worker.join(self.join_timeout_s)

    # --- requester ---------------------------------------------------------

    def _request_loop(self) -> None:
        request = self.protocol.encode_request()
        while not self._shutdown.is_set():
            with self._write_lock:
                if self._shutdown.is_set():
                    break
                try:
                    self.transport.write_line(request)
                except TransportError as e:
                    self.log.error(f"Request write failed, marking session disconnected: {e}")
                    self._shutdown.set()
                    break
            # wait() returns early once disconnect() sets the event
            if self._shutdown.wait(self.request_interval_s):
                break
        self.log.debug(f"Requester for {self.port} exited")

    # --- listener ----------------------------------------------------------

    def _listen_loop(self) -> None:
        while not self._shutdown.is_set():
            try:
                if self.transport.bytes_waiting() <= 0:
                    self._shutdown.wait(self.idle_poll_s)
                    continue
                line = self.transport.read_line()
            except TransportError as e:
                if self._shutdown.is_set():
                    break
                self.log.warning(f"Read error on {self.port}: {e}")
                self._shutdown.wait(self.idle_poll_s)
                continue
            self.handle_line(line)
        self.log.debug(f"Listener for {self.port} exited")

    def handle_line(self, line: str) -> bool:
        """Parse and persist one inbound line. Returns True if a reading was stored."""
        if not line or not self.protocol.is_protocol_line(line):
            return False

        text = line.strip()
        self.log.debug(f"Received data: {text}")
        try:
            reading = self.protocol.parse_reading(text)
        except ParseError as e:
            self.frames_dropped += 1
            self.log.warning(f"Discarding frame: {e}")
            return False

        try:
            row_id = self.store.append(reading)
        except StorageError as e:
            self.frames_dropped += 1
            self.log.error(f"Failed to store reading, dropping it: {e}")
            return False

        self.readings_persisted += 1
        self.last_reading = reading
        self.log.info(f"Reading #{row_id} saved ({reading.temperature}°C, {reading.humidity}%)")
        return True
