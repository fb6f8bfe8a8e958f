"""Domain models for the Ranks feature: tier table, progress and upgrade detection"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel


class RankTier(str, Enum):
    """Rank tiers, declared in ladder order (lowest first)"""
    IRON = "iron"
    SILVER = "silver"
    GOLD = "gold"
    DIAMOND = "diamond"
    PLATINUM = "platinum"
    TODO_MASTER = "todo_master"


class RankThreshold(BaseModel):
    """Inclusive count range and display metadata of one tier. max=None is unbounded."""
    min: int
    max: Optional[int]
    display_name: str
    color: str

    class Config:
        frozen = True


RANK_ORDER: List[RankTier] = list(RankTier)

RANK_THRESHOLDS: Dict[RankTier, RankThreshold] = {
    RankTier.IRON: RankThreshold(min=0, max=9, display_name="Iron", color="#9CA3AF"),
    RankTier.SILVER: RankThreshold(min=10, max=24, display_name="Silver", color="#C0C0C0"),
    RankTier.GOLD: RankThreshold(min=25, max=49, display_name="Gold", color="#FFD700"),
    RankTier.DIAMOND: RankThreshold(min=50, max=99, display_name="Diamond", color="#B9F2FF"),
    RankTier.PLATINUM: RankThreshold(min=100, max=199, display_name="Platinum", color="#E5E4E2"),
    RankTier.TODO_MASTER: RankThreshold(min=200, max=None, display_name="Todo Master", color="#DC2626"),
}


class RankProgress(BaseModel):
    """Progress through the current tier towards the next one"""
    current_rank: RankTier
    next_rank: Optional[RankTier] = None
    progress: int
    tasks_to_next: int
    is_max_rank: bool


class RankTransition(BaseModel):
    """A tier boundary crossing"""
    from_rank: RankTier
    to_rank: RankTier


class UserRankInfo(BaseModel):
    """Stored rank state of one user"""
    user_id: str
    username: str
    current_rank: RankTier
    total_completed_tasks: int
    rank_upgraded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RankUpgradeEvent(BaseModel):
    """An immutable rank upgrade record"""
    upgrade_id: str
    user_id: str
    from_rank: RankTier
    to_rank: RankTier
    tasks_completed_at_upgrade: int
    upgraded_at: datetime

    class Config:
        from_attributes = True


def tier_for(count: int) -> RankTier:
    """
    Map a lifetime completed-task count to its tier.

    Negative counts are treated as zero. The ranges partition [0, inf), so
    the iron fallback is never reached for valid input.
    """
    count = max(0, count)
    for tier in RANK_ORDER:
        threshold = RANK_THRESHOLDS[tier]
        if count >= threshold.min and (threshold.max is None or count <= threshold.max):
            return tier
    return RankTier.IRON


def rank_position(tier: RankTier | str) -> int:
    """Ladder index of a tier (iron is 0)"""
    return RANK_ORDER.index(RankTier(tier))


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def rank_progress(count: int) -> RankProgress:
    """
    Compute progress through the tier that contains count.

    progress = round(100 * (count - min) / (max - min + 1)), clamped to 100.
    The terminal tier always reports 100% with nothing left to the next tier.
    """
    count = max(0, count)
    current = tier_for(count)
    position = rank_position(current)

    if position == len(RANK_ORDER) - 1:
        return RankProgress(
            current_rank=current,
            next_rank=None,
            progress=100,
            tasks_to_next=0,
            is_max_rank=True,
        )

    next_rank = RANK_ORDER[position + 1]
    threshold = RANK_THRESHOLDS[current]
    tasks_in_rank = threshold.max - threshold.min + 1
    done_in_rank = count - threshold.min
    percent = _round_half_up(Decimal(100 * done_in_rank) / Decimal(tasks_in_rank))

    return RankProgress(
        current_rank=current,
        next_rank=next_rank,
        progress=min(100, percent),
        tasks_to_next=RANK_THRESHOLDS[next_rank].min - count,
        is_max_rank=False,
    )


def detect_transition(previous_count: int, new_count: int) -> Optional[RankTransition]:
    """
    Return the tier crossing between two counts, or None when both counts
    fall in the same tier. A negative previous count is treated as zero.
    """
    from_rank = tier_for(max(0, previous_count))
    to_rank = tier_for(new_count)
    if from_rank == to_rank:
        return None
    return RankTransition(from_rank=from_rank, to_rank=to_rank)
