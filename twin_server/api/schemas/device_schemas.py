"""
Pydantic schemas for device twin endpoints.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class DesiredValueRequest(BaseModel):
    """Request to set the desired value of a property."""
    value: Any = Field(..., description="Value in the property's semantic type")


class DeviceSummaryResponse(BaseModel):
    """Short description of an admitted device."""
    name: str
    namespace: str
    model: str
    protocol: str
    node_selector: Dict[str, Any] = Field(default_factory=dict)
    properties: List[str] = Field(default_factory=list)


class DeviceListResponse(BaseModel):
    """Response for device list."""
    devices: List[DeviceSummaryResponse]
    total: int


class TwinDetailResponse(BaseModel):
    """Full state of one property twin."""
    device_id: str
    property_name: str
    type: str
    phase: str
    desired: Optional[str] = None
    reported: Optional[str] = None
    last_error: Optional[str] = None
    write_attempts: int
    write_pending: bool
    consecutive_failures: int
    total_collects: int
    successful_collects: int
    total_writes: int
    last_collected_at: Optional[str] = None


class TwinStatsResponse(BaseModel):
    """Response for twin statistics."""
    total_devices: int
    total_properties: int
    by_phase: Dict[str, int]
    scheduler: Dict[str, Any]
