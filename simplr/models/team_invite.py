import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from simplr.db.base import Base


class TeamInvite(Base):
    """
    Single-use invitation into a team, optionally addressed to an email.

    An invite is pending while used_at is NULL and expires_at is in the future.
    """
    __tablename__ = "team_invites"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    invited_by = Column(String(64), nullable=False)
    email = Column(String(255), nullable=True)
    join_code = Column(String(16), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    used_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    team = relationship("Team", back_populates="invites")

    def __repr__(self):
        return f"<TeamInvite(team_id='{self.team_id}', email='{self.email}', used={self.used_at is not None})>"
