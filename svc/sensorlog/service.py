from __future__ import annotations
import logging
import threading
from typing import Callable, Optional

from .errors import StorageError
from .models import ConnectionState, ConnectionStatus
from .sensors.discovery import DiscoveryEngine
from .sensors.interface import Transport
from .sensors.session import PollingSession
from .storage import ReadingStore

SessionFactory = Callable[[Transport, ReadingStore], PollingSession]


class Supervisor:
    """
    Entry point for the shell: connect / disconnect / reconnect.

    Owns one ReadingStore for as long as it is connected and at most one
    PollingSession at a time.
    """

    def __init__(
        self,
        store: Optional[ReadingStore] = None,
        engine: Optional[DiscoveryEngine] = None,
        session_factory: Optional[SessionFactory] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.log = log or logging.getLogger(__name__)
        self.store = store or ReadingStore(log=self.log)
        self.engine = engine or DiscoveryEngine(log=self.log)
        self._session_factory = session_factory or (
            lambda transport, store: PollingSession(transport, store, log=self.log)
        )
        self.session: Optional[PollingSession] = None
        self.message = "not connected"
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self.session is not None and self.session.state == ConnectionState.CONNECTED

    def connect(self) -> bool:
        with self._lock:
            if self.connected:
                return True
            if self.session is not None:
                # Degraded session: release its port before probing again
                self.session.disconnect()
                self.session = None

            try:
                self.store.open()
            except StorageError as e:
                self.log.error(f"Reading store unavailable: {e}")
                self.message = f"storage error: {e}"
                return False

            result = self.engine.discover()
            if not result.ok or result.transport is None:
                self.store.close()
                self.message = "no device found"
                return False

            session = self._session_factory(result.transport, self.store)
            session.start()
            self.session = session
            self.message = f"connected on {result.port}"
            return True

    def disconnect(self) -> None:
        with self._lock:
            if self.session is not None:
                self.session.disconnect()
                self.session = None
            if self.store.is_open:
                self.store.close()
            self.message = "disconnected"

    def reconnect(self) -> bool:
        self.disconnect()
        return self.connect()

    def status(self) -> ConnectionStatus:
        session = self.session
        if session is None:
            return ConnectionStatus(state=ConnectionState.DISCONNECTED, message=self.message)

        message = self.message
        if session.state == ConnectionState.DISCONNECTED:
            message = f"connection to {session.port} lost"
        return ConnectionStatus(
            state=session.state,
            port=session.port,
            readings_persisted=session.readings_persisted,
            frames_dropped=session.frames_dropped,
            message=message,
        )
