"""SQLAlchemy ORM model for rank_upgrades table"""

from sqlalchemy import Column, Integer, String, DateTime

from app.db.base import Base
from app.utils.datetime_helper import utc_now


class RankUpgrade(Base):
    """
    SQLAlchemy ORM model for the rank_upgrades table.
    Append-only: rows are inserted once per tier crossing and never changed.
    """
    __tablename__ = "rank_upgrades"

    # Primary key ("upgrade_<hex>")
    upgrade_id = Column(String(255), primary_key=True)

    user_id = Column(String(255), nullable=False, index=True)
    from_rank = Column(String(50), nullable=False)
    to_rank = Column(String(50), nullable=False, index=True)
    tasks_completed_at_upgrade = Column(Integer, nullable=False)

    upgraded_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<RankUpgrade(user_id={self.user_id}, {self.from_rank}->{self.to_rank})>"
