"""
Pydantic schemas for Team entities.

Name and bound checks live in the team service so that the same messages
come back for every caller.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from simplr.core.permissions import TeamRole


class TeamCreate(BaseModel):
    """Schema for creating a new team"""
    name: str
    description: Optional[str] = None
    avatar_url: Optional[str] = None
    max_members: Optional[int] = None


class TeamUpdate(BaseModel):
    """Schema for updating a team"""
    name: Optional[str] = None
    description: Optional[str] = None
    avatar_url: Optional[str] = None
    max_members: Optional[int] = None


class TeamOut(BaseModel):
    """Schema for team output"""
    id: str
    name: str
    description: Optional[str] = None
    avatar_url: Optional[str] = None
    join_code: str
    status: str
    max_members: int
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TeamWithMembers(TeamOut):
    """Team with derived member count and the caller's role"""
    member_count: int = 0
    user_role: Optional[TeamRole] = None


class TeamPreview(BaseModel):
    """What a prospective member sees before joining"""
    id: str
    name: str
    description: Optional[str] = None
    member_count: int
    max_members: int
    created_at: datetime


class TeamJoin(BaseModel):
    join_code: str = Field(..., min_length=1, max_length=16)


class TeamStats(BaseModel):
    total_members: int
    total_tasks: int
    completed_tasks: int
    pending_invites: int


class TeamPermissions(BaseModel):
    """Permission flags for the caller, used to gate UI elements"""
    role: Optional[TeamRole] = None
    can_update_team: bool
    can_delete_team: bool
    can_manage_settings: bool
    can_invite_members: bool
    can_remove_members: bool
    can_update_member_roles: bool
    can_view_team: bool
    can_leave_team: bool
    can_create_tasks: bool
    show_team_settings: bool
    show_member_management: bool
    show_invite_button: bool
    show_delete_team_button: bool
