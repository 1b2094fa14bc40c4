"""FastAPI web application for habitloop.

Serves task definitions and the append-only completion log that the engine
reads and appends to.
"""

import logging
import os
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends, FastAPI, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from habitloop.api.request_models import CompletionLogEntryCreate, TaskDefinitionCreate, TaskDefinitionUpdate
from habitloop.database.completion_repository import CompletionLogRepository
from habitloop.database.database import get_db
from habitloop.database.definition_repository import TaskDefinitionRepository
from habitloop.models.completion import CompletionLogEntry
from habitloop.models.task_definition import TaskDefinition

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"

app = FastAPI(
    title="habitloop API",
    description="Recurring task definitions and their completion log",
    version=APP_VERSION,
)


class MessageResponse(BaseModel):
    """Response carrying a human-readable message."""
    message: str


def _internal_error(label: str, error: Exception) -> HTTPException:
    logger.error(f"{label}: {type(error).__name__}: {str(error)}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


def _resolve_tz(tz: Optional[str]) -> ZoneInfo:
    name = tz or os.getenv("HABITLOOP_TIME_ZONE") or "UTC"
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown time zone: {name}")


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": APP_VERSION}


# -- task definitions -----------------------------------------------------

@app.get("/api/taskType/user/{user_id}", response_model=List[TaskDefinition])
def list_task_definitions(user_id: str, is_active: Optional[bool] = None, db: Session = Depends(get_db)):
    """List a user's task definitions, newest first."""
    try:
        return TaskDefinitionRepository(db).list_for_user(user_id, is_active=is_active)
    except Exception as e:
        raise _internal_error("Error listing task definitions", e)


@app.get("/api/taskType/{definition_id}", response_model=TaskDefinition)
def get_task_definition(definition_id: int, db: Session = Depends(get_db)):
    """Get one task definition."""
    definition = TaskDefinitionRepository(db).get(definition_id)
    if definition is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task definition not found")
    return definition


@app.post("/api/taskType", response_model=TaskDefinition, status_code=status.HTTP_201_CREATED)
def create_task_definition(data: TaskDefinitionCreate, db: Session = Depends(get_db)):
    """Create a task definition. An empty schedule makes it an unscheduled loop."""
    try:
        return TaskDefinitionRepository(db).create(data)
    except Exception as e:
        raise _internal_error("Error creating task definition", e)


@app.patch("/api/taskType/{definition_id}", response_model=TaskDefinition)
def update_task_definition(definition_id: int, data: TaskDefinitionUpdate, db: Session = Depends(get_db)):
    """Partially update a task definition; absent fields are left unchanged."""
    try:
        updated = TaskDefinitionRepository(db).update(definition_id, data)
    except Exception as e:
        raise _internal_error("Error updating task definition", e)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task definition not found")
    return updated


@app.delete("/api/taskType/{definition_id}", response_model=MessageResponse)
def delete_task_definition(definition_id: int, db: Session = Depends(get_db)):
    """Delete a task definition and its completion log."""
    try:
        deleted = TaskDefinitionRepository(db).delete(definition_id)
    except Exception as e:
        raise _internal_error("Error deleting task definition", e)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task definition not found")
    return MessageResponse(message="Task definition deleted successfully")


# -- completion log -------------------------------------------------------

@app.get("/api/taskItem/type/{definition_id}", response_model=List[CompletionLogEntry])
def list_log_entries(definition_id: int, db: Session = Depends(get_db)):
    """List a definition's completion log, newest first."""
    try:
        return CompletionLogRepository(db).list_for_definition(definition_id)
    except Exception as e:
        raise _internal_error("Error listing completion log", e)


@app.get("/api/taskItem/today/{user_id}", response_model=List[CompletionLogEntry])
def list_log_entries_today(user_id: str, tz: Optional[str] = None, db: Session = Depends(get_db)):
    """List a user's completions created on today's local date in ``tz``."""
    zone = _resolve_tz(tz)
    try:
        return CompletionLogRepository(db).list_today_for_user(user_id, zone)
    except Exception as e:
        raise _internal_error("Error listing today's completions", e)


@app.get("/api/taskItem/{entry_id}", response_model=CompletionLogEntry)
def get_log_entry(entry_id: int, db: Session = Depends(get_db)):
    entry = CompletionLogRepository(db).get(entry_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Log entry not found")
    return entry


@app.post("/api/taskItem", response_model=CompletionLogEntry, status_code=status.HTTP_201_CREATED)
def create_log_entry(data: CompletionLogEntryCreate, db: Session = Depends(get_db)):
    """Append a completion log entry."""
    try:
        return CompletionLogRepository(db).create(data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        raise _internal_error("Error creating log entry", e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
