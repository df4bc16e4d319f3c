"""
Device twin API endpoints.

Exposes device status snapshots and accepts desired writes.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ...messages import DeviceStatusUpdate, WriteResult
from ...twins.device_manager import TwinDeviceManager
from ..dependencies import get_device_manager
from ..schemas import (
    DesiredValueRequest,
    DeviceListResponse,
    DeviceSummaryResponse,
    TwinDetailResponse,
    TwinStatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/devices", tags=["Devices"])


@router.get(
    "",
    response_model=DeviceListResponse,
    summary="List admitted devices",
)
async def list_devices(
    manager: TwinDeviceManager = Depends(get_device_manager),
) -> DeviceListResponse:
    devices = [
        DeviceSummaryResponse(**device.to_dict())
        for device in manager.iter_devices()
    ]
    return DeviceListResponse(devices=devices, total=len(devices))


@router.get(
    "/stats",
    response_model=TwinStatsResponse,
    summary="Twin statistics",
    description="Device count and property count per reconciliation phase.",
)
async def get_stats(
    manager: TwinDeviceManager = Depends(get_device_manager),
) -> TwinStatsResponse:
    return TwinStatsResponse(**manager.get_stats())


@router.get(
    "/{device_id}",
    response_model=DeviceStatusUpdate,
    summary="Get device twin status",
)
async def get_device_status(
    device_id: str,
    manager: TwinDeviceManager = Depends(get_device_manager),
) -> DeviceStatusUpdate:
    """
    Get desired/reported values and health of every property.
    """
    return manager.get_status(device_id)


@router.delete(
    "/{device_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a device",
)
async def remove_device(
    device_id: str,
    manager: TwinDeviceManager = Depends(get_device_manager),
) -> None:
    if not await manager.remove_device(device_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Device {device_id} not found",
        )


@router.get(
    "/{device_id}/twins/{property_name}",
    response_model=TwinDetailResponse,
    summary="Get one property twin",
)
async def get_twin(
    device_id: str,
    property_name: str,
    manager: TwinDeviceManager = Depends(get_device_manager),
) -> TwinDetailResponse:
    return TwinDetailResponse(**manager.get_twin(device_id, property_name).to_dict())


@router.put(
    "/{device_id}/twins/{property_name}/desired",
    response_model=WriteResult,
    summary="Set desired value",
    description=(
        "Set the desired value of a ReadWrite property. Rejected requests "
        "return 400 with the reason; the twin is left unchanged."
    ),
)
async def set_desired(
    device_id: str,
    property_name: str,
    request: DesiredValueRequest,
    manager: TwinDeviceManager = Depends(get_device_manager),
):
    result = await manager.set_desired(device_id, property_name, request.value)
    if not result.accepted:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=result.model_dump(),
        )
    return result
