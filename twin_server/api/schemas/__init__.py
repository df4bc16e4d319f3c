# Pydantic Schemas for the twin server API

from .device_schemas import (
    DesiredValueRequest,
    DeviceSummaryResponse,
    DeviceListResponse,
    TwinDetailResponse,
    TwinStatsResponse,
)
from .sync_schemas import (
    ObjectSyncResponse,
    ObjectSyncListResponse,
    SyncTargetsResponse,
)

__all__ = [
    "DesiredValueRequest",
    "DeviceSummaryResponse",
    "DeviceListResponse",
    "TwinDetailResponse",
    "TwinStatsResponse",
    "ObjectSyncResponse",
    "ObjectSyncListResponse",
    "SyncTargetsResponse",
]
