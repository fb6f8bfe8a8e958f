"""Todos API endpoints"""

import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.middleware.auth import Identity, get_current_user
from app.features.ranks.domain import RANK_THRESHOLDS
from app.features.ranks.schemas import RankThresholdInfo, RankUpgradeInfo
from app.features.todos.domain import TodoUpdate
from app.features.todos.service import TodoService
from app.features.todos.schemas import (
    CreateTodoRequest,
    MessageResponse,
    TodoListResponse,
    TodoResponse,
    TodoStatsResponse,
    TodoUpdateResponse,
    UpdateTodoRequest,
)

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/todos", tags=["todos"])


@router.get("", response_model=TodoListResponse)
async def list_todos(
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List the caller's todos, newest first"""
    todos = await TodoService(db).list(user.user_id)
    return TodoListResponse(todos=todos)


@router.post("", response_model=TodoResponse, status_code=201)
async def create_todo(
    request: CreateTodoRequest,
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a todo; body: {task}"""
    todo = await TodoService(db).create(user, request.task)
    return TodoResponse(todo=todo)


# Must be registered before /{todo_id}
@router.get("/stats", response_model=TodoStatsResponse)
async def get_stats(
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Total, completed and pending counts for the caller"""
    stats = await TodoService(db).stats(user.user_id)
    return TodoStatsResponse(stats=stats)


@router.get("/{todo_id}", response_model=TodoResponse)
async def get_todo(
    todo_id: str,
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    todo = await TodoService(db).get(user.user_id, todo_id)
    return TodoResponse(todo=todo)


@router.put("/{todo_id}", response_model=TodoUpdateResponse)
async def update_todo(
    todo_id: str,
    request: UpdateTodoRequest,
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a todo's text and/or completion.

    When the completion change moves the caller up a rank, the response
    carries rankUpgrade with the old and new tier.
    """
    result = await TodoService(db).update(
        user.user_id,
        todo_id,
        TodoUpdate(task=request.task, completed=request.completed),
    )

    rank_upgrade = None
    if result.rank_upgrade:
        threshold = RANK_THRESHOLDS[result.rank_upgrade.to_rank]
        rank_upgrade = RankUpgradeInfo(
            from_rank=result.rank_upgrade.from_rank,
            to_rank=result.rank_upgrade.to_rank,
            rank_info=RankThresholdInfo(**threshold.model_dump()),
        )

    response = TodoUpdateResponse(todo=result.todo, rank_upgrade=rank_upgrade)
    # rankUpgrade is left out entirely unless a tier was crossed
    exclude = {"rank_upgrade"} if rank_upgrade is None else None
    return JSONResponse(content=response.model_dump(mode="json", by_alias=True, exclude=exclude))


@router.delete("/{todo_id}", response_model=MessageResponse)
async def delete_todo(
    todo_id: str,
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await TodoService(db).delete(user.user_id, todo_id)
    return MessageResponse(message="Todo deleted successfully")
