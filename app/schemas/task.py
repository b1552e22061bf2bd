"""
Pydantic schemas for Task endpoints
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from app.models.task import TaskStatus


class TaskUpdate(BaseModel):
    """Schema for moving a task along its status machine"""
    status: TaskStatus
    closing_notes: Optional[str] = None


class TaskResponse(BaseModel):
    """Response schema for tasks"""
    id: int
    organization_id: int
    property_id: int
    property_name: Optional[str] = None
    submission_id: int
    submission_slug: Optional[str] = None
    response_id: int
    question_id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    assigned_to: Optional[int] = None
    assignee_name: Optional[str] = None
    is_repeat_issue: bool
    closing_notes: Optional[str] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
