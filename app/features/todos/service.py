"""Business logic for todos"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import transaction
from app.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.features.ranks.progression import RankProgressionCoordinator
from app.features.ranks.repository import RankRepository
from app.features.todos.domain import Todo, TodoStats, TodoUpdate, TodoUpdateResult
from app.features.todos.repository import TodoRepository
from app.middleware.auth import Identity

logger = logging.getLogger(__name__)


def _clean_text(task: Optional[str]) -> str:
    text = (task or "").strip()
    if not text:
        raise ValidationError("Task is required")
    return text


class TodoService:
    """Service layer for todo business logic"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = TodoRepository(db)
        self.ranks = RankRepository(db)
        self.progression = RankProgressionCoordinator(db)

    @staticmethod
    def _check_owner(todo, user_id: str, action: str) -> None:
        """Existence first, then ownership, so the two errors stay distinguishable"""
        if todo is None:
            raise NotFoundError("Todo not found")
        if todo.user_id != user_id:
            logger.warning(f"User {user_id} tried to {action} todo {todo.todo_id} owned by another user")
            raise ForbiddenError(f"Unauthorized to {action} this todo")

    async def create(self, user: Identity, task: Optional[str]) -> Todo:
        """
        Create a todo for the caller.

        The caller's rank record is provisioned in the same transaction.

        Raises:
            ValidationError: task is missing or blank
        """
        text = _clean_text(task)
        async with transaction(self.db):
            await self.ranks.ensure_user(user.user_id, user.username)
            todo = await self.repository.insert(user.user_id, text)
        logger.info(f"Created todo {todo.todo_id} for user {user.user_id}")
        return todo

    async def list(self, user_id: str) -> List[Todo]:
        return await self.repository.list_for_user(user_id)

    async def get(self, user_id: str, todo_id: str) -> Todo:
        """
        Raises:
            NotFoundError: No todo with this id
            ForbiddenError: The todo belongs to another user
        """
        todo = await self.repository.get_by_id(todo_id)
        self._check_owner(todo, user_id, "access")
        return todo

    async def stats(self, user_id: str) -> TodoStats:
        return await self.repository.stats_for_user(user_id)

    async def update(self, user_id: str, todo_id: str, changes: TodoUpdate) -> TodoUpdateResult:
        """
        Update text and/or completion of a todo.

        A completion change runs the rank progression in the same transaction:
        the todo write, counter, tier and upgrade event commit or roll back
        together.

        Raises:
            ValidationError: No fields to update, or blank text
            NotFoundError: No todo with this id
            ForbiddenError: The todo belongs to another user
            TransactionError: Storage failure; nothing was written
        """
        if changes.is_empty():
            raise ValidationError("No fields to update")
        text = _clean_text(changes.task) if changes.task is not None else None

        async with transaction(self.db):
            orm_todo = await self.repository.get_orm_for_update(todo_id)
            self._check_owner(orm_todo, user_id, "update")

            was_completed = bool(orm_todo.completed)
            todo = await self.repository.apply_update(orm_todo, task=text, completed=changes.completed)

            rank_upgrade = None
            if changes.completed is not None and changes.completed != was_completed:
                rank_upgrade = await self.progression.apply_completion_change(
                    user_id, was_completed, changes.completed
                )

        return TodoUpdateResult(todo=todo, rank_upgrade=rank_upgrade)

    async def delete(self, user_id: str, todo_id: str) -> None:
        """
        Delete a todo. Deleting a completed todo takes one off the caller's
        lifetime count (floored at zero) without touching the stored tier.

        Raises:
            NotFoundError: No todo with this id
            ForbiddenError: The todo belongs to another user
            TransactionError: Storage failure; nothing was written
        """
        async with transaction(self.db):
            orm_todo = await self.repository.get_orm_for_update(todo_id)
            self._check_owner(orm_todo, user_id, "delete")

            was_completed = bool(orm_todo.completed)
            await self.repository.delete(todo_id)
            if was_completed:
                await self.progression.correct_for_deleted_completion(user_id)

        logger.info(f"Deleted todo {todo_id} for user {user_id}")
