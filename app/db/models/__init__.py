"""SQLAlchemy ORM models"""

from app.db.models.todo import Todo
from app.db.models.user_rank import UserRank
from app.db.models.rank_upgrade import RankUpgrade

__all__ = ["Todo", "UserRank", "RankUpgrade"]
