"""
Sync run summaries and persisted sync state
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import Field

from .base import BaseSchema

class SyncSummary(BaseSchema):
    domain: str
    collection_id: str
    fetched_object_count: int
    added_after_used: Optional[str] = None
    next_added_after: str
    full_sync: bool
    object_counts: Dict[str, int] = Field(default_factory=dict)

class SyncStateSchema(BaseSchema):
    domain: str
    last_successful_sync_at: Optional[datetime] = None
    last_added_after: Optional[str] = None
    last_full_sync_at: Optional[datetime] = None
    last_error: Optional[str] = None
    updated_at: Optional[datetime] = None
