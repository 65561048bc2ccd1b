"""
Base repository pattern implementation
"""

from abc import ABC
from typing import Any, Dict, Iterable, List, Sequence, Type, TypeVar, Generic

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ..exceptions import DatabaseError
from ..models.base import Base

T = TypeVar('T', bound=Base)

# Keeps multi-row VALUES lists under the bind parameter limits of PostgreSQL and SQLite
UPSERT_CHUNK_SIZE = 500

UPSERT_DIALECTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}

class BaseRepository(Generic[T], ABC):
    """Base repository with shared counting and upsert operations"""
    
    def __init__(self, session: Session, model_class: Type[T]):
        self.session = session
        self.model_class = model_class
    
    def count_by_domain(self, model_class: Type[Base], domain: str) -> int:
        """Count rows of a domain-partitioned table"""
        return self.session.scalar(
            select(func.count()).select_from(model_class).where(model_class.domain == domain)
        )
    
    def _insert(self, model_class: Type[Base]):
        dialect = self.session.get_bind().dialect.name
        insert = UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise DatabaseError(f"Upserts are not supported on the {dialect} dialect")
        return insert(model_class)
    
    def bulk_upsert(
        self,
        model_class: Type[Base],
        rows: Sequence[Dict[str, Any]],
        conflict_columns: Sequence[str],
    ) -> int:
        """
        INSERT ... ON CONFLICT (conflict_columns) DO UPDATE, overwriting every other column.
        Rows sharing a conflict key collapse to the last one, since a single statement may
        not touch the same row twice.
        """
        if not rows:
            return 0
        
        deduped: Dict[tuple, Dict[str, Any]] = {}
        for row in rows:
            deduped[tuple(row[col] for col in conflict_columns)] = row
        unique_rows = list(deduped.values())
        
        update_columns = [col for col in unique_rows[0] if col not in conflict_columns]
        for chunk in _chunks(unique_rows, UPSERT_CHUNK_SIZE):
            stmt = self._insert(model_class).values(chunk)
            stmt = stmt.on_conflict_do_update(
                index_elements=list(conflict_columns),
                set_={col: stmt.excluded[col] for col in update_columns},
            )
            self.session.execute(stmt)
        return len(unique_rows)

def _chunks(rows: List[Dict[str, Any]], size: int) -> Iterable[List[Dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]
