"""SQLAlchemy ORM model for todos table"""

from sqlalchemy import Column, String, DateTime, Boolean, Text, Index

from app.db.base import Base
from app.utils.datetime_helper import utc_now


class Todo(Base):
    """
    SQLAlchemy ORM model for the todos table.
    completed_at is set if and only if completed is true.
    """
    __tablename__ = "todos"

    # Primary key ("todo_<hex>")
    todo_id = Column(String(255), primary_key=True)

    # Owner
    user_id = Column(String(255), nullable=False, index=True)

    # Task information
    task = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, default=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps (set in Python for sub-second ordering precision)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("idx_todos_user_completed", "user_id", "completed"),
    )

    def __repr__(self) -> str:
        return f"<Todo(todo_id={self.todo_id}, user_id='{self.user_id}', completed={self.completed})>"
