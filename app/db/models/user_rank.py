"""SQLAlchemy ORM model for user_ranks table"""

from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint

from app.db.base import Base
from app.utils.datetime_helper import utc_now


class UserRank(Base):
    """
    SQLAlchemy ORM model for the user_ranks table.

    One row per user. current_rank is a cached projection of
    total_completed_tasks and is only written by the rank progression code.
    """
    __tablename__ = "user_ranks"

    # Primary key (user id issued by the identity service)
    user_id = Column(String(255), primary_key=True)
    username = Column(String(255), nullable=False)

    # Rank state
    current_rank = Column(String(50), nullable=False, default="iron", index=True)
    total_completed_tasks = Column(Integer, nullable=False, default=0)
    rank_upgraded_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("total_completed_tasks >= 0", name="ck_user_ranks_count_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserRank(user_id={self.user_id}, current_rank='{self.current_rank}', "
            f"total_completed_tasks={self.total_completed_tasks})>"
        )
