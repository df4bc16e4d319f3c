"""
Pydantic schemas for object sync endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel


class ObjectSyncResponse(BaseModel):
    """One ObjectSync or ClusterObjectSync record."""
    kind: str
    target: str
    object_type: str
    object_name: str
    namespace: Optional[str] = None
    cluster: Optional[str] = None
    object_resource_version: str
    updated_at: str


class ObjectSyncListResponse(BaseModel):
    """Records held for one edge target."""
    target: str
    records: List[ObjectSyncResponse]
    total: int


class SyncTargetsResponse(BaseModel):
    """Edge targets with at least one record."""
    targets: List[str]
    total_records: int
