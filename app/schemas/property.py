"""
Pydantic schemas for Property endpoints
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class PropertyCreate(BaseModel):
    """Schema for creating a property"""
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50)
    slug: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = None
    primary_pm_id: Optional[int] = None


class PropertyUpdate(BaseModel):
    """Schema for updating a property"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[str] = None
    primary_pm_id: Optional[int] = None
    is_active: Optional[bool] = None


class PropertyResponse(BaseModel):
    """Response schema for properties"""
    id: int
    organization_id: int
    name: str
    slug: str
    code: str
    location: Optional[str] = None
    primary_pm_id: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
