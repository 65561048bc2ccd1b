"""
Per-domain sync bookkeeping
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from ..utils import utc_now

class AttackSyncState(Base):
    __tablename__ = 'attack_sync_state'
    
    domain: Mapped[str] = mapped_column(String(32), primary_key=True)
    last_successful_sync_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    last_added_after: Mapped[Optional[str]] = mapped_column(String(64))
    last_full_sync_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    last_error: Mapped[Optional[str]] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utc_now,
        onupdate=utc_now
    )
