"""
Pydantic schemas for Team Members.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from simplr.core.permissions import TeamRole


class TeamMemberRoleUpdate(BaseModel):
    """Schema for changing a member's role"""
    role: TeamRole


class TeamMemberOut(BaseModel):
    """Schema for team member output"""
    id: str
    team_id: str
    user_id: str
    role: TeamRole
    joined_at: Optional[datetime] = None
    invited_by: Optional[str] = None

    class Config:
        from_attributes = True
