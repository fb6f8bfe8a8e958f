"""Request and response schemas for Ranks API"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.features.ranks.domain import RankTier


class CamelModel(BaseModel):
    """Serializes field names as camelCase, accepts either form on input"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RankInfo(CamelModel):
    current: RankTier
    display_name: str
    color: str
    total_completed: int
    upgraded_at: Optional[datetime] = None


class RankProgressInfo(CamelModel):
    current: int
    next_rank: Optional[RankTier] = None
    tasks_to_next: int
    is_max_rank: bool


class RankInfoResponse(CamelModel):
    success: bool = True
    rank: RankInfo
    progress: RankProgressInfo


class RankUpgradeEntry(CamelModel):
    """One history row; tiers are reported by display name"""
    upgrade_id: str
    from_rank: str
    to_rank: str
    tasks_completed: int
    upgraded_at: datetime


class RankHistoryResponse(CamelModel):
    success: bool = True
    history: List[RankUpgradeEntry]


class LeaderboardEntry(BaseModel):
    username: str
    current_rank: RankTier
    total_completed_tasks: int
    rank_upgraded_at: Optional[datetime] = None


class LeaderboardResponse(BaseModel):
    success: bool = True
    leaderboard: List[LeaderboardEntry]


class RankThresholdInfo(CamelModel):
    min: int
    max: Optional[int] = None
    display_name: str
    color: str


class RankUpgradeInfo(CamelModel):
    """Attached to a todo update response when the update crossed a tier"""
    upgraded: bool = True
    from_rank: RankTier
    to_rank: RankTier
    rank_info: RankThresholdInfo
