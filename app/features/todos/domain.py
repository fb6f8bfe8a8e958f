"""Domain models for Todos feature"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from app.features.ranks.domain import RankTransition
from app.utils.datetime_helper import ensure_utc


class Todo(BaseModel):
    """A user's task. completed_at is present iff completed is true."""
    todo_id: str
    user_id: str
    task: str
    completed: bool
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("completed_at", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    class Config:
        from_attributes = True


class TodoUpdate(BaseModel):
    """Todo update model - all fields optional, at least one required"""
    task: Optional[str] = None
    completed: Optional[bool] = None

    def is_empty(self) -> bool:
        return self.task is None and self.completed is None


class TodoUpdateResult(BaseModel):
    """Post-update todo plus the rank upgrade it caused, if any"""
    todo: Todo
    rank_upgrade: Optional[RankTransition] = None


class TodoStats(BaseModel):
    total: int
    completed: int
    pending: int
