"""
FastAPI application exposing relay health and status.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ..core import RelayCoordinator


class HealthResponse(BaseModel):
    """Response model for the health check."""
    status: str
    timestamp: str
    observerCount: int
    deviceCount: int
    activeDeviceId: Optional[str] = None


class DeviceResponse(BaseModel):
    """Response model for one producer device."""
    id: str
    name: str
    platformVersion: Optional[str] = None
    timestamp: Optional[int] = None
    registeredAt: int
    sampleRate: int
    channels: int
    streaming: bool


# Coordinator shared with the relay server running in the same process
relay_coordinator: Optional[RelayCoordinator] = None


def get_coordinator() -> RelayCoordinator:
    """Dependency to get the relay coordinator instance."""
    if relay_coordinator is None:
        raise HTTPException(status_code=500, detail="Relay coordinator not initialized")
    return relay_coordinator


def create_app(coordinator: RelayCoordinator) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        coordinator: Coordinator whose state is reported

    Returns:
        Configured FastAPI application
    """
    global relay_coordinator
    relay_coordinator = coordinator

    app = FastAPI(
        title="TalkBack Relay API",
        description="Health and status of the TalkBack audio relay",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": "TalkBack Relay API", "version": "1.0.0"}

    @app.get("/health", response_model=HealthResponse)
    async def health_check(manager: RelayCoordinator = Depends(get_coordinator)):
        """
        Health check endpoint.

        Returns:
            Observer and device counts and the active device id
        """
        snapshot = manager.get_snapshot()
        return HealthResponse(
            status="OK" if manager.is_running else "STOPPED",
            timestamp=datetime.now(timezone.utc).isoformat(),
            **snapshot,
        )

    @app.get("/status")
    async def status(manager: RelayCoordinator = Depends(get_coordinator)) -> Dict[str, Any]:
        """Coordinator statistics."""
        return manager.get_stats()

    @app.get("/devices", response_model=List[DeviceResponse])
    async def list_devices(manager: RelayCoordinator = Depends(get_coordinator)):
        """
        List registered producer devices.

        Returns:
            The current directory snapshot
        """
        return [DeviceResponse(**entry) for entry in manager.directory.snapshot().to_payload()]

    return app
