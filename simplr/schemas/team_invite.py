"""
Pydantic schemas for team invitations.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class TeamInviteCreate(BaseModel):
    email: Optional[str] = Field(None, max_length=255)


class TeamInviteAccept(BaseModel):
    join_code: str = Field(..., min_length=1, max_length=16)


class TeamInviteOut(BaseModel):
    id: str
    team_id: str
    invited_by: str
    email: Optional[str] = None
    join_code: str
    expires_at: datetime
    used_at: Optional[datetime] = None
    used_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
