from __future__ import annotations


class SensorLogError(Exception):
    """Base class for all sensor logger errors."""


class TransportError(SensorLogError):
    """Open, read or write failure on the serial link."""

    def __init__(self, port: str, message: str) -> None:
        super().__init__(f"{port}: {message}")
        self.port = port


class ParseError(SensorLogError):
    """Inbound frame is malformed or incomplete."""


class StorageError(SensorLogError):
    """Insert or schema failure on the reading store."""


class ProtocolTimeout(SensorLogError):
    """No valid reading frame arrived within the handshake window."""
