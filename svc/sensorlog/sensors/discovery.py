from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from ..config import SETTLE_DELAY_S, RESPONSE_WINDOW_S, RESPONSE_POLL_S
from ..errors import ProtocolTimeout, TransportError
from .interface import PortLister, Transport, TransportOpener
from .protocol import DeviceProtocol
from .transport import SerialTransport, list_serial_ports


class DiscoveryState(str, Enum):
    IDLE = "idle"
    PROBING = "probing"
    CONFIRMED = "confirmed"
    EXHAUSTED = "exhausted"


@dataclass
class DiscoveryResult:
    state: DiscoveryState
    port: Optional[str] = None
    transport: Optional[Transport] = None
    tried: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == DiscoveryState.CONFIRMED


class DiscoveryEngine:
    """
    Finds the one serial port that hosts the sensor gateway.

    Candidates are enumerated fresh on every discover() call and probed
    strictly in order; the first one that answers the handshake wins and is
    handed back still open. Ports after it are never opened.
    """

    def __init__(
        self,
        open_transport: TransportOpener = SerialTransport.open,
        list_candidates: PortLister = list_serial_ports,
        protocol: Optional[DeviceProtocol] = None,
        settle_s: float = SETTLE_DELAY_S,
        response_window_s: float = RESPONSE_WINDOW_S,
        poll_interval_s: float = RESPONSE_POLL_S,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._open = open_transport
        self._list_candidates = list_candidates
        self.protocol = protocol or DeviceProtocol()
        self.settle_s = settle_s
        self.response_window_s = response_window_s
        self.poll_interval_s = poll_interval_s
        self._sleep = sleep
        self._clock = clock
        self.log = log or logging.getLogger(__name__)
        self.state = DiscoveryState.IDLE
        self.current: Optional[str] = None

    def discover(self) -> DiscoveryResult:
        self.state = DiscoveryState.IDLE
        self.current = None
        self.log.info("=== Searching for sensor gateway ===")

        candidates = list(self._list_candidates())
        if not candidates:
            self.log.warning("No serial ports found")
            self.state = DiscoveryState.EXHAUSTED
            return DiscoveryResult(DiscoveryState.EXHAUSTED)

        self.log.info(f"Found ports: {', '.join(candidates)}")

        tried: List[str] = []
        for port in candidates:
            self.state = DiscoveryState.PROBING
            self.current = port
            tried.append(port)

            transport = self.probe(port)
            if transport is not None:
                self.state = DiscoveryState.CONFIRMED
                self.log.info(f"=== Sensor gateway confirmed on {port} ===")
                return DiscoveryResult(DiscoveryState.CONFIRMED, port, transport, tried)

        self.state = DiscoveryState.EXHAUSTED
        self.current = None
        self.log.warning("=== No device found ===")
        return DiscoveryResult(DiscoveryState.EXHAUSTED, tried=tried)

    def probe(self, port: str) -> Optional[Transport]:
        """
        Run the handshake on one port. Returns the open transport on success;
        on any failure the port is closed again and None is returned.
        """
        self.log.info(f"Checking port {port}...")
        try:
            transport = self._open(port)
        except TransportError as e:
            self.log.warning(f"Cannot open {port}: {e}")
            return None

        try:
            transport.reset_buffers()
            # Let the device finish its own boot sequence after DTR toggles
            self._sleep(self.settle_s)
            transport.write_line(self.protocol.encode_request())
            self._await_reading_frame(transport)
            return transport
        except TransportError as e:
            self.log.warning(f"Probe of {port} failed: {e}")
        except ProtocolTimeout as e:
            self.log.info(f"{port} did not respond: {e}")

        transport.close()
        return None

    def _await_reading_frame(self, transport: Transport) -> None:
        deadline = self._clock() + self.response_window_s
        while self._clock() < deadline:
            if transport.bytes_waiting() > 0:
                line = transport.read_line()
                self.log.debug(f"{transport.name} replied: {line!r}")
                if self.protocol.is_valid_reading_frame(line):
                    return
            self._sleep(self.poll_interval_s)
        raise ProtocolTimeout(f"no reading frame within {self.response_window_s:.1f}s")
