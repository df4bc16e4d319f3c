"""
FastAPI dependencies for the twin server API.

The running TwinServer is stored on ``app.state`` by ``create_app``;
handlers reach its components through these getters.
"""
from fastapi import HTTPException, Request, status

from ..sync.tracker import ObjectSyncTracker
from ..twins.device_manager import TwinDeviceManager


def get_twin_server(request: Request):
    """Get the TwinServer serving this application."""
    server = getattr(request.app.state, "twin_server", None)
    if server is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Twin server is not running",
        )
    return server


def get_device_manager(request: Request) -> TwinDeviceManager:
    """Get device manager instance."""
    server = get_twin_server(request)
    if server.device_manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Twin server is not started",
        )
    return server.device_manager


def get_sync_tracker(request: Request) -> ObjectSyncTracker:
    """Get object sync tracker instance."""
    return get_twin_server(request).sync_tracker
