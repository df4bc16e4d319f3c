"""
Object sync API endpoints.

Read-only view of the ObjectSync/ClusterObjectSync records held per
edge target.
"""
from fastapi import APIRouter, Depends

from ...sync.tracker import ObjectSyncTracker
from ..dependencies import get_sync_tracker
from ..schemas import ObjectSyncListResponse, ObjectSyncResponse, SyncTargetsResponse

router = APIRouter(prefix="/objectsyncs", tags=["Object Sync"])


@router.get(
    "",
    response_model=SyncTargetsResponse,
    summary="List edge targets",
)
async def list_targets(
    tracker: ObjectSyncTracker = Depends(get_sync_tracker),
) -> SyncTargetsResponse:
    return SyncTargetsResponse(targets=tracker.targets(), total_records=len(tracker))


@router.get(
    "/{target}",
    response_model=ObjectSyncListResponse,
    summary="List records of an edge target",
)
async def list_records(
    target: str,
    tracker: ObjectSyncTracker = Depends(get_sync_tracker),
) -> ObjectSyncListResponse:
    records = [
        ObjectSyncResponse(**record.to_dict())
        for record in tracker.records_for_target(target)
    ]
    return ObjectSyncListResponse(target=target, records=records, total=len(records))
