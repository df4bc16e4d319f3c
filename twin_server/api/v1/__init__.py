"""
API Version 1 routes for the twin server.

Includes device twin status, desired writes and object sync records.
"""
from fastapi import APIRouter

from .devices import router as devices_router
from .objectsyncs import router as objectsyncs_router


def build_api_router(prefix: str = "/api/v1") -> APIRouter:
    """Main API router that includes all sub-routers."""
    api_router = APIRouter(prefix=prefix)
    api_router.include_router(devices_router)
    api_router.include_router(objectsyncs_router)
    return api_router


__all__ = [
    "build_api_router",
    "devices_router",
    "objectsyncs_router",
]
