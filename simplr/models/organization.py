import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Text, JSON
from sqlalchemy.orm import relationship
from simplr.db.base import Base


class Organization(Base):
    """
    Organization that groups users above the team level.

    Organizations:
    - Are owned by the account that created them
    - Are joined with an access code
    - Can hold tasks visible to all of their members
    """
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    access_code = Column(String(16), unique=True, nullable=False, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    settings = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    members = relationship("OrganizationMember", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    tasks = relationship("Task", back_populates="organization", passive_deletes=True)

    def __repr__(self):
        return f"<Organization(id='{self.id}', name='{self.name}')>"
