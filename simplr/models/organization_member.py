import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from simplr.db.base import Base


class OrganizationMember(Base):
    """
    Association table linking users to organizations.

    The creator is the single 'owner'; everyone else is 'admin' or 'member'.
    """
    __tablename__ = "organization_members"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="member")  # 'owner', 'admin', 'member'
    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    organization = relationship("Organization", back_populates="members")

    # Constraints
    __table_args__ = (
        UniqueConstraint('organization_id', 'user_id', name='uq_organization_user'),
    )

    def __repr__(self):
        return f"<OrganizationMember(org_id='{self.organization_id}', user_id='{self.user_id}', role='{self.role}')>"
