"""
Pydantic schemas for Task entities and task synchronization.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class TaskCategory(str, Enum):
    URGENT = "URGENT"
    IMPORTANT = "IMPORTANT"
    WORK = "WORK"
    PERSONAL = "PERSONAL"
    HEALTH = "HEALTH"
    LEARNING = "LEARNING"
    SHOPPING = "SHOPPING"
    TRAVEL = "TRAVEL"


class ChecklistItem(BaseModel):
    id: int
    text: str
    done: bool = False


def _blank_to_none(value):
    # Clients send "" for cleared date inputs
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


class TaskBase(BaseModel):
    """Base schema for task with common fields"""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: TaskCategory = TaskCategory.PERSONAL
    completed: bool = False
    checklist: Optional[List[ChecklistItem]] = None
    due_date: Optional[datetime] = None
    reminder_enabled: bool = False
    reminder_datetime: Optional[datetime] = None
    reminder_sent: bool = False
    team_id: Optional[str] = None
    is_team_task: bool = False
    assigned_to: Optional[str] = None
    organization_id: Optional[str] = None

    @field_validator("due_date", "reminder_datetime", mode="before")
    @classmethod
    def blank_dates_are_null(cls, value):
        return _blank_to_none(value)

    @model_validator(mode="after")
    def team_fields_require_team(self):
        if self.team_id is None and (self.is_team_task or self.assigned_to is not None):
            raise ValueError("Tasks without a team cannot be team tasks or have an assignee")
        if self.team_id is not None and self.organization_id is not None:
            raise ValueError("A task belongs to a team or an organization, not both")
        return self


class TaskCreate(TaskBase):
    """Schema for creating a task"""
    pass


class TeamTaskCreate(TaskBase):
    """Task posted under /teams/{team_id}/tasks; the team comes from the path"""

    @model_validator(mode="after")
    def team_fields_require_team(self):
        return self

    def for_team(self, team_id: str) -> TaskCreate:
        data = self.model_dump(exclude={"team_id", "is_team_task", "organization_id"})
        return TaskCreate(**data, team_id=team_id, is_team_task=True)


class TaskUpdate(BaseModel):
    """Schema for updating a task; unset fields are left untouched"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    completed: Optional[bool] = None
    checklist: Optional[List[ChecklistItem]] = None
    due_date: Optional[datetime] = None
    reminder_enabled: Optional[bool] = None
    reminder_datetime: Optional[datetime] = None
    reminder_sent: Optional[bool] = None
    assigned_to: Optional[str] = None

    @field_validator("due_date", "reminder_datetime", mode="before")
    @classmethod
    def blank_dates_are_null(cls, value):
        return _blank_to_none(value)

    @field_validator("title", "category", "completed", "reminder_enabled", "reminder_sent")
    @classmethod
    def not_null(cls, value, info):
        # Omit a field to leave it alone; these columns cannot be cleared
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class TaskOut(TaskBase):
    """Schema for task output"""
    id: int
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LocalTask(TaskBase):
    """
    Task as held by a client, possibly edited offline or in a guest session.

    The id may be a client-made placeholder that the store has never seen.
    """
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TaskSyncRequest(BaseModel):
    tasks: List[LocalTask] = Field(default_factory=list)


class TaskSyncResponse(BaseModel):
    tasks: List[TaskOut]
    created: int
    updated: int
    kept: int
