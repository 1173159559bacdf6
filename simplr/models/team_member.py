import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from simplr.db.base import Base


class TeamMember(Base):
    """
    Membership of a user in a team.

    Attributes:
        role: 'owner', 'admin' or 'member'
        invited_by: User id of whoever brought the member in, if known
    """
    __tablename__ = "team_members"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="member", index=True)
    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    invited_by = Column(String(64), nullable=True)

    team = relationship("Team", back_populates="members")

    __table_args__ = (
        UniqueConstraint('team_id', 'user_id', name='uq_team_member'),
    )

    def __repr__(self):
        return f"<TeamMember(team_id='{self.team_id}', user_id='{self.user_id}', role='{self.role}')>"
