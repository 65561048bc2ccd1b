"""
SQLAlchemy models for the ATT&CK sync pipeline

Model organization:
- base.py: Base class, portable JSON/array column types and the timestamp mixin
- attack.py: raw STIX objects and the typed ATT&CK tables (tactics, techniques, groups...)
- relationships.py: STIX relationship edges and the join tables derived from them
- sync_state.py: per-domain watermark and error bookkeeping
"""

from .base import Base, TimestampMixin
from .attack import (
    AttackObject, AttackTactic, AttackTechnique, AttackGroup, AttackSoftware,
    AttackMitigation, AttackDataSource, AttackDataComponent
)
from .relationships import (
    AttackRelationship, TechniqueTacticMap, GroupTechniqueMap, SoftwareTechniqueMap,
    MitigationTechniqueMap, DataSourceTechniqueMap
)
from .sync_state import AttackSyncState

# Export all models
__all__ = [
    # Base
    'Base', 'TimestampMixin',
    # Catalog
    'AttackObject', 'AttackTactic', 'AttackTechnique', 'AttackGroup', 'AttackSoftware',
    'AttackMitigation', 'AttackDataSource', 'AttackDataComponent',
    # Relationships and derived maps
    'AttackRelationship', 'TechniqueTacticMap', 'GroupTechniqueMap', 'SoftwareTechniqueMap',
    'MitigationTechniqueMap', 'DataSourceTechniqueMap',
    # Sync bookkeeping
    'AttackSyncState'
]
