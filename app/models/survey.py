"""
Survey models - versioned templates, submissions and responses
"""
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, ForeignKey, Numeric, Date, DateTime,
    Enum as SQLEnum, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship
import enum

from app.models.base import Base, TimestampMixin


class SurveyType(str, enum.Enum):
    """Who fills the survey in"""
    INTERNAL = "internal"  # Staff quality audit
    GUEST = "guest"  # Guest feedback


class SubmissionStatus(str, enum.Enum):
    """Submission lifecycle"""
    DRAFT = "draft"  # Editable, not scored on dashboards
    SUBMITTED = "submitted"  # Final, responses frozen
    REVIEWED = "reviewed"  # Acknowledged by a manager


class SurveyTemplate(Base, TimestampMixin):
    """
    Versioned survey definition.
    A template with submissions is never edited in place: a new row with
    version + 1 is created and linked back through parent_id.
    """
    __tablename__ = "survey_templates"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    version = Column(Integer, default=1, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    parent_id = Column(Integer, ForeignKey("survey_templates.id", ondelete="SET NULL"), nullable=True)
    survey_type = Column(SQLEnum(SurveyType), default=SurveyType.INTERNAL, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    parent = relationship("SurveyTemplate", remote_side=[id])
    categories = relationship(
        "SurveyCategory",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="SurveyCategory.sort_order",
    )


class SurveyCategory(Base, TimestampMixin):
    """Top-level scoring group; the only level that carries a weight"""
    __tablename__ = "survey_categories"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("survey_templates.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    weight = Column(Numeric(5, 2, asdecimal=False), default=1.0, nullable=False)
    sort_order = Column(Integer, nullable=False)

    # Relationships
    template = relationship("SurveyTemplate", back_populates="categories")
    subcategories = relationship(
        "SurveySubcategory",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="SurveySubcategory.sort_order",
    )


class SurveySubcategory(Base, TimestampMixin):
    """
    Group of questions inside a category.
    An empty name marks the single ungrouped subcategory of a simple category.
    """
    __tablename__ = "survey_subcategories"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("survey_categories.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False)

    # Relationships
    category = relationship("SurveyCategory", back_populates="subcategories")
    questions = relationship(
        "SurveyQuestion",
        back_populates="subcategory",
        cascade="all, delete-orphan",
        order_by="SurveyQuestion.sort_order",
    )


class SurveyQuestion(Base, TimestampMixin):
    """Scored question; scale bounds are per question"""
    __tablename__ = "survey_questions"

    id = Column(Integer, primary_key=True, index=True)
    subcategory_id = Column(Integer, ForeignKey("survey_subcategories.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    scale_min = Column(Integer, default=1, nullable=False)
    scale_max = Column(Integer, default=10, nullable=False)
    is_required = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, nullable=False)

    # Relationships
    subcategory = relationship("SurveySubcategory", back_populates="questions")


class SurveySubmission(Base, TimestampMixin):
    """One completed (or in-progress) survey for a property visit"""
    __tablename__ = "survey_submissions"
    __table_args__ = (
        Index("idx_survey_submissions_property_visit", "property_id", "visit_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("survey_templates.id", ondelete="CASCADE"), nullable=False)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    submitted_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    status = Column(SQLEnum(SubmissionStatus), default=SubmissionStatus.DRAFT, nullable=False)
    visit_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    slug = Column(String(255), unique=True, nullable=True)

    submitted_at = Column(DateTime, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    template = relationship("SurveyTemplate")
    property = relationship("Property")
    responses = relationship("SurveyResponse", back_populates="submission", cascade="all, delete-orphan")


class SurveyResponse(Base, TimestampMixin):
    """Score given to one question within one submission"""
    __tablename__ = "survey_responses"
    __table_args__ = (
        UniqueConstraint("submission_id", "question_id", name="uq_survey_responses_submission_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("survey_submissions.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("survey_questions.id", ondelete="CASCADE"), nullable=False)
    score = Column(Integer, nullable=False)
    note = Column(Text, nullable=True)
    issue_description = Column(Text, nullable=True)

    # Relationships
    submission = relationship("SurveySubmission", back_populates="responses")
    question = relationship("SurveyQuestion")
