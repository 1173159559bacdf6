from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel

from simplr.core.permissions import TeamRole


class OrganizationMemberRoleUpdate(BaseModel):
    """Ownership is never handed out through a role change"""
    role: Literal["admin", "member"]


class OrganizationMemberOut(BaseModel):
    """Schema for organization member output"""
    id: str
    organization_id: str
    user_id: str
    role: TeamRole
    joined_at: Optional[datetime] = None

    class Config:
        from_attributes = True
