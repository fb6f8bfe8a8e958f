"""Request and response schemas for Todos API"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.features.ranks.schemas import RankUpgradeInfo
from app.features.todos.domain import Todo, TodoStats


class CreateTodoRequest(BaseModel):
    task: Optional[str] = None


class UpdateTodoRequest(BaseModel):
    task: Optional[str] = None
    completed: Optional[bool] = None


class TodoResponse(BaseModel):
    success: bool = True
    todo: Todo


class TodoUpdateResponse(BaseModel):
    """rankUpgrade is only set when the update crossed a tier"""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    todo: Todo
    rank_upgrade: Optional[RankUpgradeInfo] = Field(None, alias="rankUpgrade")


class TodoListResponse(BaseModel):
    success: bool = True
    todos: List[Todo]


class TodoStatsResponse(BaseModel):
    success: bool = True
    stats: TodoStats


class MessageResponse(BaseModel):
    success: bool = True
    message: str
