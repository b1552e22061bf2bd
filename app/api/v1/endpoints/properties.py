"""
Property API endpoints
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.user import User, UserRole, Property
from app.schemas.property import PropertyCreate, PropertyUpdate, PropertyResponse
from app.api.dependencies import get_current_active_user, require_roles, get_accessible_property_ids
from app.services.survey_service import kebab

router = APIRouter()
logger = logging.getLogger(__name__)


async def validate_primary_manager(db: AsyncSession, organization_id: int, user_id: int) -> None:
    """The primary manager must be a property manager or admin of the same organization"""
    result = await db.execute(
        select(User).where(User.id == user_id, User.organization_id == organization_id)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Primary manager not found"
        )
    if user.role not in (UserRole.ADMIN, UserRole.PROPERTY_MANAGER):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Primary manager must be a property manager or admin"
        )


@router.get("/", response_model=List[PropertyResponse])
async def list_properties(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List the properties the caller can see.
    """
    query = (
        select(Property)
        .where(Property.organization_id == current_user.organization_id)
        .order_by(Property.name)
    )
    allowed = await get_accessible_property_ids(db, current_user)
    if allowed is not None:
        query = query.where(Property.id.in_(allowed))

    result = await db.execute(query)
    return [PropertyResponse.model_validate(p) for p in result.scalars().all()]


@router.post("/", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
async def create_property(
    property_data: PropertyCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Create a property (ADMIN only).
    """
    existing = await db.execute(select(Property.id).where(Property.code == property_data.code))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Property code already in use"
        )
    if property_data.primary_pm_id:
        await validate_primary_manager(db, current_user.organization_id, property_data.primary_pm_id)

    prop = Property(
        organization_id=current_user.organization_id,
        name=property_data.name,
        code=property_data.code,
        slug=property_data.slug or kebab(property_data.name),
        location=property_data.location,
        primary_pm_id=property_data.primary_pm_id,
        is_active=True,
    )
    db.add(prop)
    await db.flush()
    await db.refresh(prop)

    logger.info(f"Created property {prop.id} ({prop.code})")
    return PropertyResponse.model_validate(prop)


@router.patch("/{property_id}", response_model=PropertyResponse)
async def update_property(
    property_id: int,
    property_data: PropertyUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Update a property, including its primary manager (ADMIN only).
    """
    result = await db.execute(
        select(Property).where(
            Property.id == property_id,
            Property.organization_id == current_user.organization_id,
        )
    )
    prop = result.scalar_one_or_none()
    if not prop:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Property not found"
        )

    if property_data.primary_pm_id:
        await validate_primary_manager(db, current_user.organization_id, property_data.primary_pm_id)

    for field_name in property_data.model_fields_set:
        setattr(prop, field_name, getattr(property_data, field_name))
    await db.flush()
    await db.refresh(prop)
    return PropertyResponse.model_validate(prop)
