"""SQLAlchemy repository for user rank records and rank upgrade events"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import case, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.user_rank import UserRank as UserRankORM
from app.db.models.rank_upgrade import RankUpgrade as RankUpgradeORM
from app.features.ranks.domain import (
    RANK_ORDER,
    RankTier,
    RankUpgradeEvent,
    UserRankInfo,
)
from app.utils.datetime_helper import utc_now

logger = logging.getLogger(__name__)


class RankRepository:
    """Repository for rank state using SQLAlchemy"""

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: SQLAlchemy async database session
        """
        self.db = db

    async def ensure_user(self, user_id: str, username: str) -> None:
        """
        Provision the user's rank record if it does not exist yet and
        refresh the stored username. Safe under concurrent first requests.
        """
        now = utc_now()
        dialect = self.db.get_bind().dialect.name
        insert = postgresql_insert if dialect == "postgresql" else sqlite_insert
        stmt = (
            insert(UserRankORM)
            .values(
                user_id=user_id,
                username=username,
                current_rank=RankTier.IRON.value,
                total_completed_tasks=0,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_update(
                index_elements=[UserRankORM.user_id],
                set_={"username": username, "updated_at": now},
            )
        )
        await self.db.execute(stmt)

    async def get_user(self, user_id: str) -> Optional[UserRankInfo]:
        # populate_existing: counters are changed by bulk UPDATEs that bypass the identity map
        stmt = (
            select(UserRankORM)
            .where(UserRankORM.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        orm_user = result.scalar_one_or_none()
        if not orm_user:
            return None
        return UserRankInfo.model_validate(orm_user)

    async def adjust_completed_count(self, user_id: str, delta: int) -> Optional[tuple[int, RankTier]]:
        """
        Atomically add delta to the user's lifetime count, floored at zero.

        The arithmetic happens inside a single UPDATE so the engine's row lock
        serializes concurrent adjustments for the same user.

        Returns:
            (new_count, stored_tier) or None when the user has no rank record
        """
        if delta >= 0:
            new_value = UserRankORM.total_completed_tasks + delta
        else:
            new_value = case(
                (UserRankORM.total_completed_tasks + delta > 0, UserRankORM.total_completed_tasks + delta),
                else_=0,
            )
        stmt = (
            update(UserRankORM)
            .where(UserRankORM.user_id == user_id)
            .values(total_completed_tasks=new_value, updated_at=utc_now())
            .returning(UserRankORM.total_completed_tasks, UserRankORM.current_rank)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return int(row[0]), RankTier(row[1])

    async def set_rank(self, user_id: str, tier: RankTier) -> None:
        now = utc_now()
        stmt = (
            update(UserRankORM)
            .where(UserRankORM.user_id == user_id)
            .values(current_rank=tier.value, rank_upgraded_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

    async def append_upgrade(
        self,
        user_id: str,
        from_rank: RankTier,
        to_rank: RankTier,
        tasks_completed: int,
    ) -> RankUpgradeEvent:
        """Insert an upgrade event. There is no update or delete counterpart."""
        orm_upgrade = RankUpgradeORM(
            upgrade_id=f"upgrade_{uuid.uuid4().hex}",
            user_id=user_id,
            from_rank=from_rank.value,
            to_rank=to_rank.value,
            tasks_completed_at_upgrade=tasks_completed,
            upgraded_at=utc_now(),
        )
        self.db.add(orm_upgrade)
        await self.db.flush()
        return RankUpgradeEvent.model_validate(orm_upgrade)

    async def list_upgrades(self, user_id: str) -> List[RankUpgradeEvent]:
        """Upgrade events for a user, most recent first"""
        stmt = (
            select(RankUpgradeORM)
            .where(RankUpgradeORM.user_id == user_id)
            .order_by(
                RankUpgradeORM.upgraded_at.desc(),
                RankUpgradeORM.tasks_completed_at_upgrade.desc(),
            )
        )
        result = await self.db.execute(stmt)
        return [RankUpgradeEvent.model_validate(row) for row in result.scalars().all()]

    async def top_users(self, limit: int) -> List[UserRankInfo]:
        """Users ordered by tier (highest first), then lifetime count"""
        tier_position = case(
            {tier.value: position for position, tier in enumerate(RANK_ORDER)},
            value=UserRankORM.current_rank,
            else_=0,
        )
        stmt = (
            select(UserRankORM)
            .order_by(
                tier_position.desc(),
                UserRankORM.total_completed_tasks.desc(),
                UserRankORM.user_id.asc(),
            )
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return [UserRankInfo.model_validate(row) for row in result.scalars().all()]
