"""
Repository pattern for data access operations

Repository organization:
- base.py: Base repository with shared reads and dialect-aware bulk upserts
- attack_repository.py: ATT&CK catalog upserts, derived map rebuilds and lookups
- sync_state_repository.py: per-domain watermark and error bookkeeping
"""

from .base import BaseRepository
from .attack_repository import AttackRepository
from .sync_state_repository import SyncStateRepository

# Export all repositories
__all__ = [
    'BaseRepository',
    'AttackRepository',
    'SyncStateRepository'
]
