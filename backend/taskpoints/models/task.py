import uuid
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint, Index, Uuid
from taskpoints.core.database import Base

TASK_TYPE_MAX_LENGTH = 255


class Task(Base):
    """
    A completed task. Rows are append-only: created once, never updated or deleted.

    Each row is inserted in the same transaction that adds its points to the owner.
    """
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint("points > 0", name="positive_points"),
        Index("idx_tasks_user_id", "user_id"),
        Index("idx_tasks_completed_at", "completed_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    task_type = Column(String(TASK_TYPE_MAX_LENGTH), nullable=False)
    points = Column(Integer, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False)
