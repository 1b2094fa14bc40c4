"""Repository for the append-only completion log."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import desc
from sqlalchemy.orm import Session

from habitloop.api.request_models import CompletionLogEntryCreate
from habitloop.database.models import CompletionLogEntryDB, TaskDefinitionDB, utcnow
from habitloop.models.completion import CompletionLogEntry

logger = logging.getLogger(__name__)


def local_day_bounds_utc(day: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """Naive UTC [start, end) of the local calendar day ``day`` in ``tz``."""
    start = datetime.combine(day, time(0, 0), tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=tz)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


class CompletionLogRepository:
    """Repository for CompletionLogEntry database operations.

    Entries are only ever appended; there is no update or delete.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, data: CompletionLogEntryCreate) -> CompletionLogEntry:
        """Append an entry.

        Raises:
            ValueError: If the definition does not exist
        """
        definition_db = self.db.query(TaskDefinitionDB).filter(TaskDefinitionDB.id == data.definition_id).first()
        if not definition_db:
            raise ValueError(f"Task definition {data.definition_id} not found")

        now = utcnow()
        entry_db = CompletionLogEntryDB(
            definition_id=data.definition_id,
            name=data.name if data.name is not None else definition_db.name,
            amount=data.amount,
            description=data.description,
            category=data.category,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(entry_db)
            self.db.commit()
            self.db.refresh(entry_db)
            logger.debug(f"Logged completion {entry_db.id} for definition {data.definition_id}")
            return entry_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to log completion for definition {data.definition_id}: {type(e).__name__}: {str(e)}")
            raise

    def get(self, entry_id: int) -> Optional[CompletionLogEntry]:
        entry_db = self.db.query(CompletionLogEntryDB).filter(CompletionLogEntryDB.id == entry_id).first()
        return entry_db.to_pydantic() if entry_db else None

    def list_for_definition(self, definition_id: int) -> List[CompletionLogEntry]:
        """All entries of one definition, newest first."""
        rows = (
            self.db.query(CompletionLogEntryDB)
            .filter(CompletionLogEntryDB.definition_id == definition_id)
            .order_by(desc(CompletionLogEntryDB.created_at), desc(CompletionLogEntryDB.id))
            .all()
        )
        return [row.to_pydantic() for row in rows]

    def list_today_for_user(self, user_id: str, tz: ZoneInfo, now: Optional[datetime] = None) -> List[CompletionLogEntry]:
        """Entries across a user's definitions created on today's local date in ``tz``."""
        now = now or datetime.now(timezone.utc)
        today = now.astimezone(tz).date()
        start, end = local_day_bounds_utc(today, tz)
        rows = (
            self.db.query(CompletionLogEntryDB)
            .join(TaskDefinitionDB, TaskDefinitionDB.id == CompletionLogEntryDB.definition_id)
            .filter(
                TaskDefinitionDB.user_id == user_id,
                CompletionLogEntryDB.created_at >= start,
                CompletionLogEntryDB.created_at < end,
            )
            .order_by(desc(CompletionLogEntryDB.created_at), desc(CompletionLogEntryDB.id))
            .all()
        )
        return [row.to_pydantic() for row in rows]
