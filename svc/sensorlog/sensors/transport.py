from __future__ import annotations
import logging
import threading
from typing import List

import serial  # pip install pyserial
from serial.tools import list_ports

from ..config import BAUD_RATE, READ_TIMEOUT_S, WRITE_TIMEOUT_S
from ..errors import TransportError

logger = logging.getLogger(__name__)

LINE_ENDING = "\r\n"


class SerialTransport:
    """
    pyserial-backed Transport for the ESP32 sensor gateway.

      - 115200 baud, 8 data bits, no parity, 1 stop bit (8N1).
      - DTR asserted on open.
      - Frames are CRLF-terminated UTF-8 lines.

    Every pyserial/OS failure is re-raised as TransportError.
    """

    def __init__(self, ser: serial.Serial, name: str) -> None:
        self.ser = ser
        self.name = name
        self._write_lock = threading.Lock()

    @classmethod
    def open(
        cls,
        port: str,
        baudrate: int = BAUD_RATE,
        read_timeout_s: float = READ_TIMEOUT_S,
        write_timeout_s: float = WRITE_TIMEOUT_S,
    ) -> "SerialTransport":
        try:
            ser = serial.Serial(
                port=port,
                baudrate=baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=read_timeout_s,
                write_timeout=write_timeout_s,
            )
            ser.dtr = True
        except (serial.SerialException, OSError, ValueError) as e:
            raise TransportError(port, f"open failed: {e}") from e
        logger.info(f"SerialTransport opened {port} at {baudrate} baud")
        return cls(ser, port)

    @property
    def is_open(self) -> bool:
        return bool(self.ser.is_open)

    def reset_buffers(self) -> None:
        try:
            self.ser.reset_input_buffer()
            self.ser.reset_output_buffer()
        except (serial.SerialException, OSError) as e:
            raise TransportError(self.name, f"buffer reset failed: {e}") from e

    def write_line(self, text: str) -> None:
        frame = (text + LINE_ENDING).encode("utf-8")
        with self._write_lock:
            try:
                self.ser.write(frame)
                self.ser.flush()
            except (serial.SerialException, OSError) as e:
                raise TransportError(self.name, f"write failed: {e}") from e

    def bytes_waiting(self) -> int:
        try:
            return self.ser.in_waiting
        except (serial.SerialException, OSError) as e:
            raise TransportError(self.name, f"status query failed: {e}") from e

    def read_line(self) -> str:
        try:
            raw = self.ser.readline()
        except (serial.SerialException, OSError) as e:
            raise TransportError(self.name, f"read failed: {e}") from e
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    def close(self) -> None:
        try:
            self.ser.close()
        except (serial.SerialException, OSError) as e:
            logger.warning(f"SerialTransport[{self.name}] close failed: {e}")

    def __repr__(self) -> str:
        return f"SerialTransport({self.name!r})"


def list_serial_ports() -> List[str]:
    """Enumerate serial ports present right now, in stable device-name order."""
    return sorted(p.device for p in list_ports.comports())
