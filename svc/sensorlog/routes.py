from __future__ import annotations
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import List
from .models import ConnectionStatus, ErrorResponse, HealthResponse, StoredReading
from .service import Supervisor


router = APIRouter()
supervisor: Supervisor | None = None


def get_supervisor() -> Supervisor:
    global supervisor
    if supervisor is None:
        supervisor = Supervisor()
    return supervisor


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns service health status and the current device connection state",
    tags=["Health"]
)
def health(sup: Supervisor = Depends(get_supervisor)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", state=sup.status().state)


@router.get(
    "/status",
    response_model=ConnectionStatus,
    summary="Connection status",
    description="Returns the device connection state, port and session counters",
    tags=["Connection"]
)
def get_status(sup: Supervisor = Depends(get_supervisor)) -> ConnectionStatus:
    return sup.status()


@router.post(
    "/connect",
    response_model=ConnectionStatus,
    summary="Connect to the sensor gateway",
    description="Runs port discovery and starts polling the first device that answers the handshake.",
    responses={
        200: {"description": "Device connected"},
        503: {"model": ErrorResponse, "description": "No device found or storage unavailable"}
    },
    tags=["Connection"]
)
def connect(sup: Supervisor = Depends(get_supervisor)) -> ConnectionStatus:
    if not sup.connect():
        raise HTTPException(status_code=503, detail=sup.message)
    return sup.status()


@router.post(
    "/reconnect",
    response_model=ConnectionStatus,
    summary="Reconnect to the sensor gateway",
    description="Tears down the current session and runs discovery again.",
    responses={
        200: {"description": "Device connected"},
        503: {"model": ErrorResponse, "description": "No device found or storage unavailable"}
    },
    tags=["Connection"]
)
def reconnect(sup: Supervisor = Depends(get_supervisor)) -> ConnectionStatus:
    if not sup.reconnect():
        raise HTTPException(status_code=503, detail=sup.message)
    return sup.status()


@router.post(
    "/disconnect",
    response_model=ConnectionStatus,
    summary="Disconnect from the sensor gateway",
    tags=["Connection"]
)
def disconnect(sup: Supervisor = Depends(get_supervisor)) -> ConnectionStatus:
    sup.disconnect()
    return sup.status()


@router.get(
    "/readings",
    response_model=List[StoredReading],
    summary="Stored readings",
    description="Retrieve stored readings, newest first, with pagination support",
    tags=["Readings"]
)
def get_readings(
    limit: int = Query(default=100, ge=1, le=1000, description="Maximum number of readings to return"),
    offset: int = Query(default=0, ge=0, description="Number of readings to skip"),
    sup: Supervisor = Depends(get_supervisor),
) -> List[StoredReading]:
    rows = sup.store.fetch_readings(limit=limit, offset=offset)
    return [StoredReading(**r) for r in rows]


@router.get(
    "/readings/latest",
    response_model=StoredReading,
    summary="Latest stored reading",
    responses={404: {"model": ErrorResponse, "description": "No readings stored yet"}},
    tags=["Readings"]
)
def get_latest_reading(sup: Supervisor = Depends(get_supervisor)) -> StoredReading:
    row = sup.store.fetch_latest()
    if row is None:
        raise HTTPException(status_code=404, detail="no readings stored yet")
    return StoredReading(**row)
