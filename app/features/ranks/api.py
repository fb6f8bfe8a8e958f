"""Ranks API endpoints"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.middleware.auth import Identity, get_current_user
from app.features.ranks.service import RankQueryService
from app.features.ranks.schemas import (
    LeaderboardResponse,
    RankHistoryResponse,
    RankInfoResponse,
)

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/ranks", tags=["ranks"])


@router.get("/info", response_model=RankInfoResponse)
async def get_rank_info(
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get the caller's stored rank and progress towards the next one.

    Progress is computed from the raw lifetime count, the rank is the stored
    (high-water mark) tier.

    Raises:
        404: The caller has no rank record yet
    """
    rank, progress = await RankQueryService(db).rank_with_progress(user.user_id)
    return RankInfoResponse(rank=rank, progress=progress)


@router.get("/history", response_model=RankHistoryResponse)
async def get_rank_history(
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the caller's rank upgrades, most recent first"""
    history = await RankQueryService(db).history(user.user_id)
    return RankHistoryResponse(history=history)


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: Optional[str] = Query(None, description="Number of users to return (default 10)"),
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Top users by rank, then by completed tasks"""
    leaderboard = await RankQueryService(db).leaderboard(limit)
    return LeaderboardResponse(leaderboard=leaderboard)
