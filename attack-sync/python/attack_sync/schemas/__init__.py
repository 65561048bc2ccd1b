"""
Pydantic schemas for the sync pipeline

Schema organization:
- base.py: BaseSchema with ORM attribute loading
- records.py: normalized per-kind ATT&CK records and the parsed bundle
- sync.py: sync run summary and persisted sync state
"""

from .base import BaseSchema
from .records import (
    StixObjectRecord, TacticRecord, TechniqueRecord, GroupRecord, SoftwareRecord,
    MitigationRecord, DataSourceRecord, DataComponentRecord, RelationshipRecord,
    AttackRecord, TechniqueTacticLink, ParsedBundle
)
from .sync import SyncSummary, SyncStateSchema

# Export all schemas
__all__ = [
    # Base
    'BaseSchema',
    # Records
    'StixObjectRecord', 'TacticRecord', 'TechniqueRecord', 'GroupRecord', 'SoftwareRecord',
    'MitigationRecord', 'DataSourceRecord', 'DataComponentRecord', 'RelationshipRecord',
    'AttackRecord', 'TechniqueTacticLink', 'ParsedBundle',
    # Sync
    'SyncSummary', 'SyncStateSchema'
]
