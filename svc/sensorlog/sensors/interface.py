from __future__ import annotations
from typing import Callable, List, Protocol


class Transport(Protocol):
    """
    Minimal line-oriented byte stream all device links must implement.
    One instance represents one open candidate port; whoever holds it open owns it.
    """

    name: str  # port identifier, e.g. "/dev/ttyUSB0" or "COM3"

    @property
    def is_open(self) -> bool:
        ...

    def reset_buffers(self) -> None:
        """Discard stale bytes in both directions."""
        ...

    def write_line(self, text: str) -> None:
        """Write one frame terminated by CRLF."""
        ...

    def bytes_waiting(self) -> int:
        ...

    def read_line(self) -> str:
        """Read one line without its terminator; may return '' on timeout."""
        ...

    def close(self) -> None:
        ...


# Opens a transport for a port name; raises TransportError on failure
TransportOpener = Callable[[str], Transport]

# Returns the candidate port names at the time of the call
PortLister = Callable[[], List[str]]
