"""
Pydantic schemas for SOP templates, assignments and completions
"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, datetime
from app.models.sop import SopFrequency, SopCompletionStatus
from app.services.sop_schedule import check_deadline_day


DEADLINE_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# ==================== TEMPLATES ====================

class SopItemCreate(BaseModel):
    content: str = Field(..., min_length=1)
    sort_order: int = 0


class SopSectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    sort_order: int = 0
    items: List[SopItemCreate] = []


class SopTemplateCreate(BaseModel):
    """Schema for creating an SOP template with sections and ungrouped items"""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    sections: List[SopSectionCreate] = []
    ungrouped_items: List[SopItemCreate] = []


class SopTemplateUpdate(BaseModel):
    """Schema for renaming an SOP template or replacing its content"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    sections: Optional[List[SopSectionCreate]] = None
    ungrouped_items: Optional[List[SopItemCreate]] = None


class SopItemResponse(BaseModel):
    id: int
    content: str
    sort_order: int
    section_id: Optional[int] = None

    class Config:
        from_attributes = True


class SopSectionResponse(BaseModel):
    id: int
    name: str
    sort_order: int
    items: List[SopItemResponse] = []

    class Config:
        from_attributes = True


class SopTemplateResponse(BaseModel):
    """SOP template with sections (each with its items) and ungrouped items"""
    id: int
    organization_id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    sections: List[SopSectionResponse] = []
    ungrouped_items: List[SopItemResponse] = []


class SopTemplateSummary(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    item_count: int = 0
    assignment_count: int = 0
    created_at: datetime


# ==================== ASSIGNMENTS ====================

class SopAssignmentCreate(BaseModel):
    """Schema for assigning an SOP to a user at a property"""
    property_id: int
    user_id: int
    frequency: SopFrequency
    deadline_time: str = Field("17:00", pattern=DEADLINE_TIME_PATTERN)
    deadline_day: Optional[int] = None
    notify_on_overdue: bool = False

    @model_validator(mode="after")
    def validate_deadline_day(self):
        check_deadline_day(self.frequency, self.deadline_day)
        return self


class SopAssignmentUpdate(BaseModel):
    """Partial update; only deadline_day may be cleared with null"""
    frequency: Optional[SopFrequency] = None
    deadline_time: Optional[str] = Field(None, pattern=DEADLINE_TIME_PATTERN)
    deadline_day: Optional[int] = None
    is_active: Optional[bool] = None
    notify_on_overdue: Optional[bool] = None

    @model_validator(mode="after")
    def reject_null_required_fields(self):
        for field_name in ("frequency", "deadline_time", "is_active", "notify_on_overdue"):
            if field_name in self.model_fields_set and getattr(self, field_name) is None:
                raise ValueError(f"{field_name} cannot be null")
        return self


class SopAssignmentResponse(BaseModel):
    id: int
    template_id: int
    property_id: int
    user_id: int
    frequency: SopFrequency
    deadline_time: str
    deadline_day: Optional[int] = None
    is_active: bool
    notify_on_overdue: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ==================== COMPLETIONS ====================

class SopItemCompletionResponse(BaseModel):
    id: int
    completion_id: int
    item_id: int
    is_checked: bool
    checked_at: Optional[datetime] = None
    note: Optional[str] = None

    class Config:
        from_attributes = True


class SopCompletionResponse(BaseModel):
    """A completion with its item checks and progress"""
    id: int
    assignment_id: int
    due_date: date
    status: SopCompletionStatus
    completed_at: Optional[datetime] = None
    checked_count: int = 0
    total_items: int = 0
    item_completions: List[SopItemCompletionResponse] = []


class CompletionOpen(BaseModel):
    """Get-or-create the completion of an assignment for a due date"""
    assignment_id: int
    due_date: Optional[date] = None


class ItemCheck(BaseModel):
    is_checked: bool
    note: Optional[str] = None


class ItemCheckResponse(BaseModel):
    item_completion: SopItemCompletionResponse
    completion: SopCompletionResponse


class MySopResponse(BaseModel):
    """One of the caller's active assignments for the current period"""
    assignment: SopAssignmentResponse
    template_id: int
    template_name: str
    property_id: int
    property_name: str
    items: List[SopItemResponse] = []
    current_due_date: date
    current_completion: Optional[SopCompletionResponse] = None
    is_overdue: bool


class SopDashboardRow(BaseModel):
    completion_id: int
    assignment_id: int
    template_id: int
    template_name: str
    property_id: int
    property_name: str
    user_id: int
    user_name: Optional[str] = None
    due_date: date
    deadline_time: str
    status: SopCompletionStatus
    display_status: str
    completed_at: Optional[datetime] = None
    checked_count: int
    total_items: int
