"""
ATT&CK sync orchestration

Drives one run for a domain: pick the added_after watermark from the stored sync state,
fetch the TAXII collection, parse it, upsert it in a single transaction and record the
outcome. A failed run records its error and leaves the watermark where it was.
"""

import logging
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from .config import AttackSyncSettings, get_settings
from .database import db_session
from .exceptions import DatabaseError
from .repositories import AttackRepository, SyncStateRepository
from .schemas.sync import SyncStateSchema, SyncSummary
from .stix_parser import parse_bundle
from .taxii_client import TaxiiClient
from .utils import format_watermark, utc_now

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractContextManager]

class AttackSyncService:
    """Runs full and incremental ATT&CK syncs for one domain at a time"""
    
    def __init__(
        self,
        client: Optional[TaxiiClient] = None,
        session_scope: SessionScope = db_session,
        settings: Optional[AttackSyncSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or get_settings()
        self.client = client or TaxiiClient(self.settings)
        self.session_scope = session_scope
        self.clock = clock
    
    def _resolve_watermark(self, state, full: bool, since: Optional[str]) -> Optional[str]:
        if full or state is None or state.last_full_sync_at is None:
            return None
        return since or state.last_added_after
    
    def run_sync(self, domain: str = 'enterprise', full: bool = False, since: Optional[str] = None) -> SyncSummary:
        """Run one sync; raises the first error after recording it in the sync state.
        Database errors surface as DatabaseError."""
        # Unknown domains fail here, before any state row or request is made
        collection_id = self.settings.resolve_collection_id(domain)
        started_at = self.clock()

        try:
            with self.session_scope() as session:
                state = SyncStateRepository(session).get_state(domain)
                added_after = self._resolve_watermark(state, full, since)

            full_sync = added_after is None
            logger.info(f"Starting {'full' if full_sync else 'delta'} ATT&CK sync for {domain} (added_after={added_after})")

            fetched = self.client.fetch_collection_objects(domain, added_after=added_after)
            parsed = parse_bundle(fetched.objects, domain)
            
            with self.session_scope() as session:
                AttackRepository(session).upsert_attack_data(parsed)
            
            next_added_after = format_watermark(started_at)
            with self.session_scope() as session:
                SyncStateRepository(session).mark_success(
                    domain,
                    last_added_after=next_added_after,
                    full_sync=full_sync,
                    synced_at=self.clock(),
                )
        except SQLAlchemyError as e:
            logger.error(f"ATT&CK sync failed for {domain}: {e}", exc_info=True)
            self._record_failure(domain, str(e))
            raise DatabaseError(f"Sync state storage failed for {domain}: {e}") from e
        except Exception as e:
            logger.error(f"ATT&CK sync failed for {domain}: {e}", exc_info=True)
            self._record_failure(domain, str(e))
            raise
        
        summary = SyncSummary(
            domain=domain,
            collection_id=fetched.collection_id or collection_id,
            fetched_object_count=len(fetched.objects),
            added_after_used=added_after,
            next_added_after=next_added_after,
            full_sync=full_sync,
            object_counts=parsed.counts(),
        )
        logger.info(f"ATT&CK sync complete: {summary.model_dump()}")
        return summary
    
    def _record_failure(self, domain: str, message: str) -> None:
        try:
            with self.session_scope() as session:
                SyncStateRepository(session).mark_failure(domain, message, failed_at=self.clock())
        except Exception as e:
            # The run's own error is what the caller needs to see
            logger.error(f"Could not record sync failure for {domain}: {e}")
    
    def get_status(self, domain: str) -> Optional[SyncStateSchema]:
        """Persisted sync state for a domain, or None if it was never synced"""
        try:
            with self.session_scope() as session:
                state = SyncStateRepository(session).get_state(domain)
                return SyncStateSchema.model_validate(state) if state is not None else None
        except SQLAlchemyError as e:
            raise DatabaseError(f"Could not read sync state for {domain}: {e}") from e

def run_attack_sync(domain: str = 'enterprise', full: bool = False, since: Optional[str] = None) -> SyncSummary:
    """Convenience wrapper using the environment configuration and default database"""
    return AttackSyncService().run_sync(domain=domain, full=full, since=since)
