"""
Organization, User and Property models
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.models.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    """User roles for RBAC"""
    ADMIN = "admin"  # Organization admin - sees every property
    PROPERTY_MANAGER = "property_manager"  # Manages assigned properties
    STAFF = "staff"  # Fills in surveys and SOPs for assigned properties


class Organization(Base, TimestampMixin):
    """Hospitality group - the tenant boundary"""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    users = relationship("User", back_populates="organization")
    properties = relationship("Property", back_populates="organization", cascade="all, delete-orphan")


class User(Base, TimestampMixin):
    """
    Portal user profile. Credentials live with the identity provider;
    the API only trusts the user id carried by the bearer token.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)

    # Role & Organization
    role = Column(SQLEnum(UserRole), default=UserRole.STAFF, nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)

    # Status
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    organization = relationship("Organization", back_populates="users")
    property_assignments = relationship("PropertyAssignment", back_populates="user", cascade="all, delete-orphan")


class Property(Base, TimestampMixin):
    """A hotel, lodge or venue operated by the organization"""
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    code = Column(String(50), nullable=False, unique=True)  # Short code used in submission slugs
    location = Column(Text, nullable=True)

    # Designated manager; receives tasks derived from low survey scores
    primary_pm_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    organization = relationship("Organization", back_populates="properties")
    primary_pm = relationship("User", foreign_keys=[primary_pm_id])
    assignments = relationship("PropertyAssignment", back_populates="property", cascade="all, delete-orphan")


class PropertyAssignment(Base):
    """Grants a non-admin user access to a property"""
    __tablename__ = "property_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "property_id", name="uq_property_assignments_user_property"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)

    # Relationships
    user = relationship("User", back_populates="property_assignments")
    property = relationship("Property", back_populates="assignments")
