"""SQLAlchemy repository for todos"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.todo import Todo as TodoORM
from app.features.todos.domain import Todo, TodoStats
from app.utils.datetime_helper import utc_now

logger = logging.getLogger(__name__)


class TodoRepository:
    """Repository for todo operations using SQLAlchemy"""

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: SQLAlchemy async database session
        """
        self.db = db

    async def insert(self, user_id: str, task: str) -> Todo:
        now = utc_now()
        orm_todo = TodoORM(
            todo_id=f"todo_{uuid.uuid4().hex}",
            user_id=user_id,
            task=task,
            completed=False,
            completed_at=None,
            created_at=now,
            updated_at=now,
        )
        self.db.add(orm_todo)
        await self.db.flush()
        return Todo.model_validate(orm_todo)

    async def list_for_user(self, user_id: str) -> List[Todo]:
        """All todos owned by user_id, newest first"""
        stmt = (
            select(TodoORM)
            .where(TodoORM.user_id == user_id)
            .order_by(TodoORM.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return [Todo.model_validate(row) for row in result.scalars().all()]

    async def get_by_id(self, todo_id: str) -> Optional[Todo]:
        """Fetch a todo regardless of owner; ownership is checked by the caller"""
        stmt = select(TodoORM).where(TodoORM.todo_id == todo_id)
        result = await self.db.execute(stmt)
        orm_todo = result.scalar_one_or_none()
        if not orm_todo:
            return None
        return Todo.model_validate(orm_todo)

    async def get_orm_for_update(self, todo_id: str) -> Optional[TodoORM]:
        """Fetch the ORM row with a row-level lock held until the transaction ends"""
        stmt = (
            select(TodoORM)
            .where(TodoORM.todo_id == todo_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def apply_update(
        self,
        orm_todo: TodoORM,
        task: Optional[str] = None,
        completed: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> Todo:
        """
        Write the changed fields of a locked row.

        completed_at follows the flag: set on false -> true, cleared on
        true -> false, untouched when the flag does not change.
        """
        now = now or utc_now()
        if task is not None:
            orm_todo.task = task
        if completed is not None and completed != orm_todo.completed:
            orm_todo.completed = completed
            orm_todo.completed_at = now if completed else None
        orm_todo.updated_at = now
        await self.db.flush()
        return Todo.model_validate(orm_todo)

    async def delete(self, todo_id: str) -> None:
        await self.db.execute(delete(TodoORM).where(TodoORM.todo_id == todo_id))

    async def stats_for_user(self, user_id: str) -> TodoStats:
        stmt = select(
            func.count(TodoORM.todo_id),
            func.sum(case((TodoORM.completed.is_(True), 1), else_=0)),
            func.sum(case((TodoORM.completed.is_(False), 1), else_=0)),
        ).where(TodoORM.user_id == user_id)
        result = await self.db.execute(stmt)
        total, completed, pending = result.one()
        return TodoStats(
            total=int(total or 0),
            completed=int(completed or 0),
            pending=int(pending or 0),
        )
