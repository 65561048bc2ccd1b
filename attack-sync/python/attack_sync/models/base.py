"""
Base model classes and mixins
"""

from datetime import datetime

from sqlalchemy import JSON, String, TIMESTAMP, text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column, declarative_base

from ..utils import utc_now

# Base class for all models
Base = declarative_base()

# PostgreSQL gets native JSONB / TEXT[]; other dialects (SQLite in tests) store JSON text
JsonDocument = JSON().with_variant(JSONB(), 'postgresql')
StringList = JSON().with_variant(ARRAY(String), 'postgresql')

class TimestampMixin:
    """Mixin for created/updated timestamps"""
    created_date: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utc_now,
        server_default=text('CURRENT_TIMESTAMP')
    )
    updated_date: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        server_default=text('CURRENT_TIMESTAMP')
    )
