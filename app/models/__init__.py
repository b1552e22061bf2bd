"""
SQLAlchemy models - Import all for Alembic autogenerate
"""
from app.models.base import Base, TimestampMixin

# Import all models
from app.models.user import Organization, User, UserRole, Property, PropertyAssignment
from app.models.survey import (
    SurveyType,
    SubmissionStatus,
    SurveyTemplate,
    SurveyCategory,
    SurveySubcategory,
    SurveyQuestion,
    SurveySubmission,
    SurveyResponse,
)
from app.models.task import Task, TaskStatus
from app.models.sop import (
    SopFrequency,
    SopCompletionStatus,
    SopTemplate,
    SopSection,
    SopItem,
    SopAssignment,
    SopCompletion,
    SopItemCompletion,
)

# Export all for easy imports
__all__ = [
    "Base",
    "TimestampMixin",
    "Organization",
    "User",
    "UserRole",
    "Property",
    "PropertyAssignment",
    "SurveyType",
    "SubmissionStatus",
    "SurveyTemplate",
    "SurveyCategory",
    "SurveySubcategory",
    "SurveyQuestion",
    "SurveySubmission",
    "SurveyResponse",
    "Task",
    "TaskStatus",
    "SopFrequency",
    "SopCompletionStatus",
    "SopTemplate",
    "SopSection",
    "SopItem",
    "SopAssignment",
    "SopCompletion",
    "SopItemCompletion",
]
