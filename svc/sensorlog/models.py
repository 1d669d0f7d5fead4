from __future__ import annotations
from enum import Enum
from typing import Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class SensorReading(BaseModel):
    """One reading frame as reported by the sensor gateway."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    temperature: float = Field(description="Air temperature (°C)")
    humidity: float = Field(description="Relative humidity (%)")
    pressure: float = Field(description="Barometric pressure (hPa)")
    air_quality: int = Field(
        validation_alias=AliasChoices("airQuality", "air_quality"),
        description="Air quality index reported by the gas sensor",
    )
    light_level: int = Field(
        validation_alias=AliasChoices("lightLevel", "light_level"),
        description="Ambient light level",
    )
    date: str = Field(description="Device-local date string, kept verbatim")
    time: str = Field(description="Device-local time string, kept verbatim")
    ip_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ipAddress", "ip_address"),
    )
    wifi_status: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("wifiStatus", "wifi_status"),
    )
    ntp_sync: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ntpSync", "ntp_sync"),
    )


class StoredReading(BaseModel):
    """A persisted row of the sensor_readings table."""
    id: int = Field(description="Auto-assigned row identifier")
    timestamp: str = Field(description="Ingestion time assigned by the store (UTC)")
    temperature: float
    humidity: float
    pressure: float
    air_quality: int
    light_level: int
    reading_date: str
    reading_time: str
    ip_address: Optional[str] = None
    wifi_status: Optional[str] = None
    ntp_sync: Optional[str] = None


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ConnectionStatus(BaseModel):
    """Coarse status of the logger for display by the shell."""
    state: ConnectionState = Field(description="Whether a polling session is running")
    port: Optional[str] = Field(default=None, description="Serial port of the connected device")
    readings_persisted: int = Field(default=0, description="Readings stored by the current session")
    frames_dropped: int = Field(default=0, description="Frames discarded by the current session")
    message: str = Field(default="", description="Outcome of the last connect/disconnect action")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status (always 'ok' if service is running)")
    state: ConnectionState = Field(description="Current device connection state")


class ErrorResponse(BaseModel):
    """Standard error response format."""
    detail: str = Field(description="Error message describing what went wrong")
