"""
Standard Operating Procedure models - checklists, recurring assignments and completions
"""
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, ForeignKey, Date, DateTime,
    Enum as SQLEnum, UniqueConstraint,
)
from sqlalchemy.orm import relationship
import enum

from app.models.base import Base, TimestampMixin


class SopFrequency(str, enum.Enum):
    """How often an assignment falls due"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SopCompletionStatus(str, enum.Enum):
    """Completion state of one due period"""
    PENDING = "pending"
    COMPLETED = "completed"


class SopTemplate(Base, TimestampMixin):
    """Checklist definition"""
    __tablename__ = "sop_templates"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    sections = relationship(
        "SopSection",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="SopSection.sort_order",
    )
    items = relationship(
        "SopItem",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="SopItem.sort_order",
    )
    assignments = relationship("SopAssignment", back_populates="template", cascade="all, delete-orphan")


class SopSection(Base, TimestampMixin):
    """Optional heading grouping checklist items"""
    __tablename__ = "sop_sections"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("sop_templates.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    # Relationships
    template = relationship("SopTemplate", back_populates="sections")
    items = relationship("SopItem", back_populates="section", order_by="SopItem.sort_order")


class SopItem(Base, TimestampMixin):
    """Single checklist line"""
    __tablename__ = "sop_items"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("sop_templates.id", ondelete="CASCADE"), nullable=False)
    section_id = Column(Integer, ForeignKey("sop_sections.id", ondelete="CASCADE"), nullable=True)
    content = Column(Text, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    # Relationships
    template = relationship("SopTemplate", back_populates="items")
    section = relationship("SopSection", back_populates="items")


class SopAssignment(Base, TimestampMixin):
    """Recurring obligation: one user runs one checklist at one property"""
    __tablename__ = "sop_assignments"
    __table_args__ = (
        UniqueConstraint("template_id", "property_id", "user_id", name="uq_sop_assignments_template_property_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("sop_templates.id", ondelete="CASCADE"), nullable=False)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    frequency = Column(SQLEnum(SopFrequency), nullable=False)
    deadline_time = Column(String(5), nullable=False)  # "HH:MM"
    deadline_day = Column(Integer, nullable=True)  # Weekly: 0=Mon..6=Sun, monthly: day of month
    is_active = Column(Boolean, default=True, nullable=False)
    notify_on_overdue = Column(Boolean, default=False, nullable=False)

    # Relationships
    template = relationship("SopTemplate", back_populates="assignments")
    property = relationship("Property")
    user = relationship("User")
    completions = relationship("SopCompletion", back_populates="assignment", cascade="all, delete-orphan")


class SopCompletion(Base, TimestampMixin):
    """
    One due period of an assignment. Created lazily the first time the
    period's checklist is opened.
    """
    __tablename__ = "sop_completions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "due_date", name="uq_sop_completions_assignment_due_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("sop_assignments.id", ondelete="CASCADE"), nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(SQLEnum(SopCompletionStatus), default=SopCompletionStatus.PENDING, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    # Relationships
    assignment = relationship("SopAssignment", back_populates="completions")
    item_completions = relationship("SopItemCompletion", back_populates="completion", cascade="all, delete-orphan")


class SopItemCompletion(Base, TimestampMixin):
    """Checked state of one item within one completion"""
    __tablename__ = "sop_item_completions"
    __table_args__ = (
        UniqueConstraint("completion_id", "item_id", name="uq_sop_item_completions_completion_item"),
    )

    id = Column(Integer, primary_key=True, index=True)
    completion_id = Column(Integer, ForeignKey("sop_completions.id", ondelete="CASCADE"), nullable=False)
    item_id = Column(Integer, ForeignKey("sop_items.id", ondelete="CASCADE"), nullable=False)
    is_checked = Column(Boolean, default=False, nullable=False)
    checked_at = Column(DateTime, nullable=True)
    note = Column(Text, nullable=True)

    # Relationships
    completion = relationship("SopCompletion", back_populates="item_completions")
    item = relationship("SopItem")
