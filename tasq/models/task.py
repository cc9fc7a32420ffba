from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from tasq.models.base import Base
from sqlalchemy.sql import func


class Task(Base):
    __tablename__ = "tasks"
    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(50), nullable=False, server_default="todo")
    priority = Column(String(20), nullable=False, server_default="medium")
    due_date = Column(Date)
    due_time = Column(String(5))  # "HH:MM"
    reminder_minutes = Column(Integer)
    reminder_sent = Column(Boolean, nullable=False, server_default="false")
    project_id = Column(Integer)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"))
    assigned_to = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    assigned_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="tasks", foreign_keys=[user_id])
    assignee = relationship("User", foreign_keys=[assigned_to])

    __table_args__ = (
        CheckConstraint(
            "status IN ('todo', 'in_progress', 'review', 'done', 'cancelled')",
            name="ck_task_status",
        ),
        CheckConstraint("priority IN ('high', 'medium', 'low')", name="ck_task_priority"),
        CheckConstraint("reminder_minutes IS NULL OR reminder_minutes >= 0", name="ck_task_reminder_nonneg"),
    )
