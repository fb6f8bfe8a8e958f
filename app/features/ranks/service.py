"""Read-only rank projections: current rank, upgrade history, leaderboard"""

import re
from typing import Any, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import LEADERBOARD_DEFAULT_LIMIT, LEADERBOARD_MAX_LIMIT
from app.exceptions import NotFoundError
from app.features.ranks.domain import (
    RANK_THRESHOLDS,
    RankTier,
    UserRankInfo,
    rank_progress,
)
from app.features.ranks.repository import RankRepository
from app.features.ranks.schemas import (
    LeaderboardEntry,
    RankInfo,
    RankProgressInfo,
    RankUpgradeEntry,
)


# Leading integer only: "5abc" and "5.5" both read as 5
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_limit(raw: Any) -> int:
    """
    Parse the leaderboard limit.

    Only the leading integer of the value counts. Absent, unparsable and
    non-positive values fall back to the default; large values are capped.
    """
    match = _LEADING_INT.match("" if raw is None else str(raw))
    if not match:
        return LEADERBOARD_DEFAULT_LIMIT
    limit = int(match.group(1))
    if limit <= 0:
        return LEADERBOARD_DEFAULT_LIMIT
    return min(limit, LEADERBOARD_MAX_LIMIT)


def _display_name(tier: RankTier | str) -> str:
    return RANK_THRESHOLDS[RankTier(tier)].display_name


class RankQueryService:
    """Service layer for rank reads. Never writes."""

    def __init__(self, db: AsyncSession):
        self.repository = RankRepository(db)

    async def _get_user(self, user_id: str) -> UserRankInfo:
        user = await self.repository.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def current_rank(self, user_id: str) -> RankInfo:
        """
        Stored rank of a user with its display metadata.

        Raises:
            NotFoundError: The user has no rank record
        """
        user = await self._get_user(user_id)
        threshold = RANK_THRESHOLDS[user.current_rank]
        return RankInfo(
            current=user.current_rank,
            display_name=threshold.display_name,
            color=threshold.color,
            total_completed=user.total_completed_tasks,
            upgraded_at=user.rank_upgraded_at,
        )

    async def rank_with_progress(self, user_id: str) -> tuple[RankInfo, RankProgressInfo]:
        """Current rank plus progress computed from the raw lifetime count"""
        rank = await self.current_rank(user_id)
        progress = rank_progress(rank.total_completed)
        return rank, RankProgressInfo(
            current=progress.progress,
            next_rank=progress.next_rank,
            tasks_to_next=progress.tasks_to_next,
            is_max_rank=progress.is_max_rank,
        )

    async def history(self, user_id: str) -> List[RankUpgradeEntry]:
        """Upgrade events of a user, most recent first"""
        upgrades = await self.repository.list_upgrades(user_id)
        return [
            RankUpgradeEntry(
                upgrade_id=upgrade.upgrade_id,
                from_rank=_display_name(upgrade.from_rank),
                to_rank=_display_name(upgrade.to_rank),
                tasks_completed=upgrade.tasks_completed_at_upgrade,
                upgraded_at=upgrade.upgraded_at,
            )
            for upgrade in upgrades
        ]

    async def leaderboard(self, limit: Optional[Any] = None) -> List[LeaderboardEntry]:
        """Top users by tier (highest first), then by lifetime count"""
        users = await self.repository.top_users(parse_limit(limit))
        return [
            LeaderboardEntry(
                username=user.username,
                current_rank=user.current_rank,
                total_completed_tasks=user.total_completed_tasks,
                rank_upgraded_at=user.rank_upgraded_at,
            )
            for user in users
        ]
