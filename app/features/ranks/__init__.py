"""Ranks feature module"""

from app.features.ranks.api import router
from app.features.ranks.repository import RankRepository
from app.features.ranks.service import RankQueryService
from app.features.ranks.progression import RankProgressionCoordinator, plan_completion_change
from app.features.ranks.domain import (
    RankTier,
    RankTransition,
    RankProgress,
    detect_transition,
    rank_progress,
    tier_for,
)

__all__ = [
    "router",
    "RankRepository",
    "RankQueryService",
    "RankProgressionCoordinator",
    "plan_completion_change",
    "RankTier",
    "RankTransition",
    "RankProgress",
    "detect_transition",
    "rank_progress",
    "tier_for",
]
