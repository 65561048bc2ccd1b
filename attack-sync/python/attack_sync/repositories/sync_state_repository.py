"""
Repository for per-domain sync state
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .base import BaseRepository
from ..models.sync_state import AttackSyncState
from ..utils import utc_now

logger = logging.getLogger(__name__)

class SyncStateRepository(BaseRepository[AttackSyncState]):
    """Reads and records the outcome of sync runs"""
    
    def __init__(self, session: Session):
        super().__init__(session, AttackSyncState)
    
    def get_state(self, domain: str) -> Optional[AttackSyncState]:
        return self.session.get(AttackSyncState, domain)
    
    def _get_or_create(self, domain: str) -> AttackSyncState:
        state = self.get_state(domain)
        if state is None:
            state = AttackSyncState(domain=domain)
            self.session.add(state)
        return state
    
    def mark_success(
        self,
        domain: str,
        last_added_after: str,
        full_sync: bool,
        synced_at: Optional[datetime] = None,
    ) -> AttackSyncState:
        """Advance the watermark and clear any previous error"""
        synced_at = synced_at or utc_now()
        state = self._get_or_create(domain)
        state.last_successful_sync_at = synced_at
        state.last_added_after = last_added_after
        if full_sync:
            state.last_full_sync_at = synced_at
        state.last_error = None
        state.updated_at = synced_at
        self.session.flush()
        logger.info(f"Recorded successful {'full' if full_sync else 'delta'} sync for {domain}, next added_after={last_added_after}")
        return state
    
    def mark_failure(self, domain: str, error_message: str, failed_at: Optional[datetime] = None) -> AttackSyncState:
        """Record the error; the stored watermark is left as it was"""
        state = self._get_or_create(domain)
        state.last_error = error_message
        state.updated_at = failed_at or utc_now()
        self.session.flush()
        logger.warning(f"Recorded failed sync for {domain}: {error_message}")
        return state
