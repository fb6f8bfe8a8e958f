"""Rank progression: keeps the lifetime counter, tier and upgrade history in step
with task completion changes.

Tasks move between two states (not completed / completed). Every completion
change is reduced to a counter delta through COMPLETION_DELTAS, and only an
upward delta runs the upgrade detector. When the detector reports a boundary
crossing, the stored tier is recomputed as tier_for(count) and an event is
appended, whatever the stored tier was before. The downward path never touches
the tier, so after an un-completion or a deletion the stored tier can sit above
tier_for(count) until the next upward crossing repairs it.

The coordinator never opens or commits a transaction itself. It runs inside
the transaction of the task mutation that triggered it, so any failure here
rolls back the task change as well.
"""

import logging
from typing import Dict, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError
from app.features.ranks.domain import RankTransition, detect_transition, tier_for
from app.features.ranks.repository import RankRepository

logger = logging.getLogger(__name__)


# (old completed flag, new completed flag) -> counter delta
COMPLETION_DELTAS: Dict[Tuple[bool, bool], int] = {
    (False, False): 0,
    (False, True): 1,
    (True, False): -1,
    (True, True): 0,
}


class CompletionPlan(BaseModel):
    """Outcome of a completion change on the lifetime counter"""
    delta: int
    new_count: int
    transition: Optional[RankTransition] = None


def plan_completion_change(old_flag: bool, new_flag: bool, old_count: int) -> CompletionPlan:
    """
    Pure transition function: (old_flag, new_flag, old_count) -> (new_count, transition).

    The detector only runs on the upward path; decrements floor at zero.
    """
    delta = COMPLETION_DELTAS[(bool(old_flag), bool(new_flag))]
    old_count = max(0, old_count)
    new_count = max(0, old_count + delta)
    transition = detect_transition(old_count, new_count) if delta > 0 else None
    return CompletionPlan(delta=delta, new_count=new_count, transition=transition)


class RankProgressionCoordinator:
    """Applies completion changes to a user's rank state inside an open transaction"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = RankRepository(db)

    def _require_transaction(self) -> None:
        if not self.db.in_transaction():
            raise RuntimeError("Rank progression must run inside the task mutation's transaction")

    async def apply_completion_change(
        self,
        user_id: str,
        old_flag: bool,
        new_flag: bool,
    ) -> Optional[RankTransition]:
        """
        Adjust the lifetime counter for a completion flag change and record a
        tier change when the increment crosses a tier boundary.

        Returns:
            The upgrade transition, or None when no upgrade happened

        Raises:
            NotFoundError: The user has no rank record
        """
        self._require_transaction()

        delta = COMPLETION_DELTAS[(bool(old_flag), bool(new_flag))]
        if delta == 0:
            return None

        adjusted = await self.repository.adjust_completed_count(user_id, delta)
        if adjusted is None:
            raise NotFoundError("User not found")
        new_count, stored_rank = adjusted

        if delta < 0:
            logger.debug(f"Lifetime count for {user_id} decreased to {new_count}")
            return None

        plan = plan_completion_change(old_flag, new_flag, new_count - delta)
        transition = plan.transition
        if transition is None:
            return None

        # from is the stored tier, which may be stale after earlier decrements
        upgrade = RankTransition(from_rank=stored_rank, to_rank=tier_for(new_count))
        await self.repository.set_rank(user_id, upgrade.to_rank)
        await self.repository.append_upgrade(
            user_id,
            from_rank=upgrade.from_rank,
            to_rank=upgrade.to_rank,
            tasks_completed=new_count,
        )
        logger.info(
            f"User {user_id} upgraded {upgrade.from_rank.value} -> {upgrade.to_rank.value} "
            f"at {new_count} completed tasks"
        )
        return upgrade

    async def correct_for_deleted_completion(self, user_id: str) -> int:
        """
        Remove a deleted completed task's contribution from the counter.

        This is a counter correction, not a completion toggle: the detector
        does not run and the stored tier is left alone.

        Returns:
            The new lifetime count
        """
        self._require_transaction()

        adjusted = await self.repository.adjust_completed_count(user_id, -1)
        if adjusted is None:
            raise NotFoundError("User not found")
        return adjusted[0]
