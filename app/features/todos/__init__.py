"""Todos feature module"""

from app.features.todos.api import router
from app.features.todos.repository import TodoRepository
from app.features.todos.service import TodoService
from app.features.todos.domain import Todo, TodoStats, TodoUpdate, TodoUpdateResult

__all__ = [
    "router",
    "TodoRepository",
    "TodoService",
    "Todo",
    "TodoStats",
    "TodoUpdate",
    "TodoUpdateResult",
]
