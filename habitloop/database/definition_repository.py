"""Repository for TaskDefinition database operations."""

import logging
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import desc

from habitloop.api.request_models import TaskDefinitionCreate, TaskDefinitionUpdate
from habitloop.database.models import CompletionLogEntryDB, TaskDefinitionDB, utcnow
from habitloop.models.task_definition import TaskDefinition

logger = logging.getLogger(__name__)

# Columns that may legitimately be set to NULL by an update
_NULLABLE_FIELDS = {"default_amount"}


class TaskDefinitionRepository:
    """Repository for TaskDefinition database operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, data: TaskDefinitionCreate) -> TaskDefinition:
        """Create a new task definition."""
        now = utcnow()
        definition_db = TaskDefinitionDB(
            user_id=data.user_id,
            name=data.name,
            schedules=[entry.model_dump() for entry in data.schedules],
            priority=data.priority,
            track_by=data.track_by,
            categories=list(data.categories),
            default_amount=data.default_amount,
            yearly_goal=data.yearly_goal,
            monthly_goal=data.monthly_goal,
            weekly_goal=data.weekly_goal,
            daily_goal=data.daily_goal,
            is_active=data.is_active,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(definition_db)
            self.db.commit()
            self.db.refresh(definition_db)
            logger.debug(f"Created task definition {definition_db.id}: {data.name[:50]}")
            return definition_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create task definition for user {data.user_id}: {type(e).__name__}: {str(e)}")
            raise

    def get(self, definition_id: int) -> Optional[TaskDefinition]:
        """Get a task definition by ID."""
        definition_db = self.db.query(TaskDefinitionDB).filter(TaskDefinitionDB.id == definition_id).first()
        return definition_db.to_pydantic() if definition_db else None

    def list_for_user(self, user_id: str, is_active: Optional[bool] = None) -> List[TaskDefinition]:
        """Get a user's definitions, newest first, optionally filtered by active flag."""
        query = self.db.query(TaskDefinitionDB).filter(TaskDefinitionDB.user_id == user_id)
        if is_active is not None:
            query = query.filter(TaskDefinitionDB.is_active.is_(is_active))
        rows = query.order_by(desc(TaskDefinitionDB.created_at), desc(TaskDefinitionDB.id)).all()
        return [row.to_pydantic() for row in rows]

    def update(self, definition_id: int, data: TaskDefinitionUpdate) -> Optional[TaskDefinition]:
        """Apply a partial update. Returns None if the definition does not exist."""
        definition_db = self.db.query(TaskDefinitionDB).filter(TaskDefinitionDB.id == definition_id).first()
        if not definition_db:
            return None

        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field not in _NULLABLE_FIELDS:
                continue
            setattr(definition_db, field, value)
        definition_db.updated_at = utcnow()

        try:
            self.db.commit()
            self.db.refresh(definition_db)
            logger.debug(f"Updated task definition {definition_id}: {sorted(changes)}")
            return definition_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update task definition {definition_id}: {type(e).__name__}: {str(e)}")
            raise

    def delete(self, definition_id: int) -> bool:
        """Delete a definition together with its completion log."""
        definition_db = self.db.query(TaskDefinitionDB).filter(TaskDefinitionDB.id == definition_id).first()
        if not definition_db:
            return False

        try:
            self.db.query(CompletionLogEntryDB).filter(
                CompletionLogEntryDB.definition_id == definition_id
            ).delete(synchronize_session=False)
            self.db.delete(definition_db)
            self.db.commit()
            logger.debug(f"Deleted task definition {definition_id}")
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete task definition {definition_id}: {type(e).__name__}: {str(e)}")
            raise
