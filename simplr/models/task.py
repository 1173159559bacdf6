from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, DateTime, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from simplr.db.base import Base


class Task(Base):
    """
    A personal or team task owned by user_id.

    Team tasks carry team_id with is_team_task=True and may be assigned to a
    member. Personal tasks never carry team fields. Organization tasks carry
    organization_id and are visible to every member of the organization.
    """
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(20), nullable=False, default="PERSONAL")
    completed = Column(Boolean, nullable=False, default=False)
    checklist = Column(JSON, nullable=True)  # [{"id": 1, "text": "...", "done": false}]
    due_date = Column(DateTime(timezone=True), nullable=True)

    # Reminders
    reminder_enabled = Column(Boolean, nullable=False, default=False)
    reminder_datetime = Column(DateTime(timezone=True), nullable=True, index=True)
    reminder_sent = Column(Boolean, nullable=False, default=False)

    # Team association
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=True, index=True)
    is_team_task = Column(Boolean, nullable=False, default=False, index=True)
    assigned_to = Column(String(64), nullable=True, index=True)

    # Organization association
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    team = relationship("Team", back_populates="tasks")
    organization = relationship("Organization", back_populates="tasks")

    def __repr__(self):
        return f"<Task(id={self.id}, user_id='{self.user_id}', team_id={self.team_id}, completed={self.completed})>"
