import uuid
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from simplr.db.base import Base


class Team(Base):
    __tablename__ = "teams"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    avatar_url = Column(String(500), nullable=True)
    join_code = Column(String(16), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active", index=True)  # 'active', 'suspended', 'archived'
    max_members = Column(Integer, nullable=False, default=10)
    created_by = Column(String(64), nullable=True, index=True)  # NULL for guest creators
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan", passive_deletes=True)
    invites = relationship("TeamInvite", back_populates="team", cascade="all, delete-orphan", passive_deletes=True)
    tasks = relationship("Task", back_populates="team", passive_deletes=True)

    def __repr__(self):
        return f"<Team(id='{self.id}', name='{self.name}', status='{self.status}')>"
