from __future__ import annotations
import os

# Get the svc directory (parent of the sensorlog package where this file lives)
_SVC_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DATA_DIR = os.getenv("SENSORLOG_DATA_DIR", "data")

# Durable reading store and the directory migration backups are copied into
SENSOR_DB_FILE = os.path.join(_SVC_DIR, DATA_DIR, os.getenv("SENSORLOG_DB_NAME", "sensor_data.db"))
BACKUP_DIR = os.getenv("SENSORLOG_BACKUP_DIR", os.path.dirname(SENSOR_DB_FILE))

# Serial link settings (ESP32 sensor gateway firmware runs at 115200 8N1)
BAUD_RATE = int(os.getenv("SENSORLOG_BAUD_RATE", "115200"))
READ_TIMEOUT_S = float(os.getenv("SENSORLOG_READ_TIMEOUT_S", "2.0"))
WRITE_TIMEOUT_S = float(os.getenv("SENSORLOG_WRITE_TIMEOUT_S", "2.0"))

# Handshake timing: boot settle delay, response window and its polling step
SETTLE_DELAY_S = float(os.getenv("SENSORLOG_SETTLE_DELAY_S", "2.0"))
RESPONSE_WINDOW_S = float(os.getenv("SENSORLOG_RESPONSE_WINDOW_S", "3.0"))
RESPONSE_POLL_S = float(os.getenv("SENSORLOG_RESPONSE_POLL_S", "0.1"))

# Polling session timing
REQUEST_INTERVAL_S = float(os.getenv("SENSORLOG_REQUEST_INTERVAL_S", "5.0"))
DISCONNECT_JOIN_S = float(os.getenv("SENSORLOG_DISCONNECT_JOIN_S", "0.5"))

# Run discovery in the background when the service starts
AUTO_CONNECT = os.getenv("SENSORLOG_AUTO_CONNECT", "true").lower() in ("1", "true", "yes", "on")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
