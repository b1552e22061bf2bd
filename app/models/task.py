"""
Task model - follow-up work raised from low survey scores
"""
from sqlalchemy import Column, Integer, Text, Boolean, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from app.models.base import Base, TimestampMixin


class TaskStatus(str, enum.Enum):
    """Task lifecycle; closed is terminal"""
    OPEN = "open"
    INVESTIGATING = "investigating"
    CLOSED = "closed"


class Task(Base, TimestampMixin):
    """
    Created at most once per qualifying survey response (unique response_id).
    """
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    submission_id = Column(Integer, ForeignKey("survey_submissions.id", ondelete="CASCADE"), nullable=False)
    response_id = Column(Integer, ForeignKey("survey_responses.id", ondelete="CASCADE"), nullable=False, unique=True)
    question_id = Column(Integer, ForeignKey("survey_questions.id", ondelete="CASCADE"), nullable=False, index=True)

    # Question text copied at creation time
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)

    status = Column(SQLEnum(TaskStatus), default=TaskStatus.OPEN, nullable=False)
    assigned_to = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_repeat_issue = Column(Boolean, default=False, nullable=False)

    # Closing
    closing_notes = Column(Text, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    property = relationship("Property")
    submission = relationship("SurveySubmission")
    response = relationship("SurveyResponse")
    question = relationship("SurveyQuestion")
    assignee = relationship("User", foreign_keys=[assigned_to])
    closer = relationship("User", foreign_keys=[closed_by])
