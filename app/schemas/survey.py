"""
Pydantic schemas for survey templates, submissions and score trees
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from app.models.survey import SurveyType, SubmissionStatus


# ==================== TEMPLATES ====================

class QuestionCreate(BaseModel):
    """Schema for a question inside a template tree"""
    text: str = Field(..., min_length=1)
    description: Optional[str] = None
    scale_min: int = 1
    scale_max: int = 10
    is_required: bool = True
    sort_order: int = 0


class SubcategoryCreate(BaseModel):
    """Schema for a subcategory; an empty name means ungrouped"""
    name: str = Field("", max_length=255)
    description: Optional[str] = None
    sort_order: int = 0
    questions: List[QuestionCreate] = []


class CategoryCreate(BaseModel):
    """
    Schema for a category.
    A simple category may list its questions directly; they are stored in a
    single ungrouped subcategory.
    """
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    weight: float = 1.0
    sort_order: int = 0
    subcategories: List[SubcategoryCreate] = []
    questions: List[QuestionCreate] = []

    def resolved_subcategories(self) -> List[SubcategoryCreate]:
        if self.subcategories:
            return self.subcategories
        if self.questions:
            return [SubcategoryCreate(name="", sort_order=0, questions=self.questions)]
        return []


class TemplateCreate(BaseModel):
    """Schema for creating a survey template with its full tree"""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    survey_type: SurveyType = SurveyType.INTERNAL
    categories: List[CategoryCreate]


class TemplateUpdate(BaseModel):
    """Schema for updating a survey template"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    categories: Optional[List[CategoryCreate]] = None


class QuestionResponse(BaseModel):
    id: int
    text: str
    description: Optional[str] = None
    scale_min: int
    scale_max: int
    is_required: bool
    sort_order: int

    class Config:
        from_attributes = True


class SubcategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    sort_order: int
    questions: List[QuestionResponse] = []

    class Config:
        from_attributes = True


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    weight: float
    sort_order: int
    subcategories: List[SubcategoryResponse] = []

    class Config:
        from_attributes = True


class TemplateResponse(BaseModel):
    """Response schema for a template with its tree"""
    id: int
    organization_id: int
    name: str
    description: Optional[str] = None
    version: int
    is_active: bool
    parent_id: Optional[int] = None
    survey_type: SurveyType
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    categories: List[CategoryResponse] = []

    class Config:
        from_attributes = True


class TemplateSummary(BaseModel):
    """Template list row"""
    id: int
    name: str
    description: Optional[str] = None
    version: int
    is_active: bool
    parent_id: Optional[int] = None
    survey_type: SurveyType
    category_count: int = 0
    question_count: int = 0
    created_at: datetime


# ==================== SUBMISSIONS ====================

class ResponseInput(BaseModel):
    """One answered question"""
    question_id: int
    score: int
    note: Optional[str] = None
    issue_description: Optional[str] = None


class SubmissionCreate(BaseModel):
    """Schema for creating a submission as draft or directly submitted"""
    template_id: int
    property_id: int
    visit_date: date
    notes: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.DRAFT
    responses: List[ResponseInput] = []


class SubmissionUpdate(BaseModel):
    """Schema for editing a draft; responses replace the stored set"""
    visit_date: Optional[date] = None
    notes: Optional[str] = None
    responses: Optional[List[ResponseInput]] = None


class ResponseOutput(BaseModel):
    id: int
    question_id: int
    score: int
    note: Optional[str] = None
    issue_description: Optional[str] = None

    class Config:
        from_attributes = True


class QuestionScoreResponse(BaseModel):
    question_id: int
    text: str
    scale_min: int
    scale_max: int
    score: Optional[int] = None
    normalized: Optional[float] = None
    note: Optional[str] = None
    issue_description: Optional[str] = None

    class Config:
        from_attributes = True


class SubcategoryScoreResponse(BaseModel):
    subcategory_id: int
    name: str
    average: Optional[float] = None
    answered_count: int
    question_count: int
    is_ungrouped: bool = False
    questions: List[QuestionScoreResponse] = []

    class Config:
        from_attributes = True


class CategoryScoreResponse(BaseModel):
    category_id: int
    name: str
    weight: float
    average: Optional[float] = None
    answered_count: int
    subcategories: List[SubcategoryScoreResponse] = []

    class Config:
        from_attributes = True


class SurveyScoreResponse(BaseModel):
    """Score tree on the 0-10 display scale"""
    overall: float
    has_data: bool
    scale: int
    band: Optional[str] = None
    answered_count: int
    categories: List[CategoryScoreResponse] = []

    class Config:
        from_attributes = True


class SubmissionSummary(BaseModel):
    """Submission list row"""
    id: int
    template_id: int
    template_name: str
    template_version: int
    property_id: int
    property_name: str
    submitted_by: Optional[int] = None
    status: SubmissionStatus
    visit_date: date
    slug: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class SubmissionResponse(BaseModel):
    """Response schema for a submission with responses and score tree"""
    id: int
    template_id: int
    property_id: int
    submitted_by: Optional[int] = None
    status: SubmissionStatus
    visit_date: date
    notes: Optional[str] = None
    slug: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    responses: List[ResponseOutput] = []
    score: SurveyScoreResponse
