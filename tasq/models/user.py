from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.orm import relationship
from tasq.models.base import Base
from sqlalchemy.sql import func


class User(Base):
    """Workspace member.

    Owned by the account/CRUD layer.  The notification engine only reads
    it to address deadline emails and to scope the per-day ledger.
    """

    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, server_default="user")
    avatar_url = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    tasks = relationship("Task", back_populates="owner", foreign_keys="Task.user_id")

    @property
    def join_date(self):
        return self.created_at
