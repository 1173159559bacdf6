"""
Pydantic schemas for Organization entities.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from simplr.core.permissions import TeamRole


class OrganizationCreate(BaseModel):
    """Schema for creating a new organization"""
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class OrganizationUpdate(BaseModel):
    """Schema for updating an organization"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    settings: Optional[Dict[str, Any]] = None


class OrganizationOut(BaseModel):
    """Schema for organization output"""
    id: str
    name: str
    description: Optional[str] = None
    access_code: str
    owner_id: str
    settings: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    member_count: int = 0
    user_role: Optional[TeamRole] = None

    class Config:
        from_attributes = True


class OrganizationPreview(BaseModel):
    """What a prospective member sees before joining"""
    id: str
    name: str
    description: Optional[str] = None
    member_count: int
    created_at: datetime


class OrganizationJoin(BaseModel):
    access_code: str = Field(..., min_length=1, max_length=16)


class OrganizationStats(BaseModel):
    member_count: int
    task_count: int
    completed_task_count: int
