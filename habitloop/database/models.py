"""SQLAlchemy database models for habitloop."""

from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, JSON, ForeignKey, Text

from habitloop.database.database import Base
from habitloop.models.completion import CompletionLogEntry
from habitloop.models.task_definition import TaskDefinition


def utcnow() -> datetime:
    """Naive UTC timestamp (columns store UTC without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskDefinitionDB(Base):
    """Database model for TaskDefinition."""

    __tablename__ = "tasktype"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # [{"day_of_week": 1, "times": ["07:30", "18:00"]}]; [] = unscheduled
    schedules = Column(JSON, nullable=False, default=list)

    priority = Column(Integer, nullable=False, default=1)
    track_by = Column(String(255), nullable=False)
    categories = Column(JSON, nullable=False, default=list)
    default_amount = Column(Float, nullable=True)

    # Goals
    yearly_goal = Column(Integer, nullable=False, default=0)
    monthly_goal = Column(Integer, nullable=False, default=0)
    weekly_goal = Column(Integer, nullable=False, default=0)
    daily_goal = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_pydantic(self) -> TaskDefinition:
        """Convert database model to Pydantic model."""
        return TaskDefinition(
            id=self.id,
            user_id=self.user_id,
            schedule=self.schedules or [],
            name=self.name,
            priority=self.priority,
            track_by=self.track_by,
            categories=self.categories or [],
            default_amount=self.default_amount,
            yearly_goal=self.yearly_goal or 0,
            monthly_goal=self.monthly_goal or 0,
            weekly_goal=self.weekly_goal or 0,
            daily_goal=self.daily_goal or 0,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class CompletionLogEntryDB(Base):
    """Database model for CompletionLogEntry (append-only)."""

    __tablename__ = "taskitem"

    id = Column(Integer, primary_key=True, autoincrement=True)
    definition_id = Column(Integer, ForeignKey("tasktype.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=True)
    amount = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    def to_pydantic(self) -> CompletionLogEntry:
        """Convert database model to Pydantic model."""
        return CompletionLogEntry(
            id=self.id,
            definition_id=self.definition_id,
            name=self.name,
            amount=self.amount,
            description=self.description,
            category=self.category,
            created_at=self.created_at,
        )
