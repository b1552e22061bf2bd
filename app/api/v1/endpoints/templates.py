"""
Survey Template API endpoints
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.user import User, UserRole
from app.schemas.survey import (
    TemplateCreate,
    TemplateUpdate,
    TemplateResponse,
    TemplateSummary,
)
from app.api.dependencies import get_current_active_user, require_roles, domain_http_exception
from app.services.survey_service import get_survey_service

router = APIRouter()
logger = logging.getLogger(__name__)
survey_service = get_survey_service()


@router.get("/", response_model=List[TemplateSummary])
async def list_templates(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List survey templates of the caller's organization with tree sizes.
    """
    rows = await survey_service.list_templates(db, current_user.organization_id, active_only=active_only)
    return [
        TemplateSummary(
            id=row["template"].id,
            name=row["template"].name,
            description=row["template"].description,
            version=row["template"].version,
            is_active=row["template"].is_active,
            parent_id=row["template"].parent_id,
            survey_type=row["template"].survey_type,
            category_count=row["category_count"],
            question_count=row["question_count"],
            created_at=row["template"].created_at,
        )
        for row in rows
    ]


@router.post("/", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    template_data: TemplateCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Create a template with its category -> subcategory -> question tree (ADMIN only).
    """
    try:
        template = await survey_service.create_template(
            db, current_user.organization_id, template_data, created_by=current_user.id
        )
    except ValueError as e:
        raise domain_http_exception(e)
    return TemplateResponse.model_validate(template)


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Get a template tree ordered by sort_order.
    """
    try:
        template = await survey_service.get_template(db, template_id, current_user.organization_id)
    except ValueError as e:
        raise domain_http_exception(e)
    return TemplateResponse.model_validate(template)


@router.patch("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: int,
    template_data: TemplateUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Update a template (ADMIN only).

    A new category tree on a template that already has submissions creates
    a new version; the response is then the new template.
    """
    try:
        template = await survey_service.get_template(db, template_id, current_user.organization_id)
        if not template.is_active and template_data.categories is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Inactive template versions cannot be edited"
            )
        updated = await survey_service.update_template(db, template, template_data, user_id=current_user.id)
    except ValueError as e:
        raise domain_http_exception(e)
    return TemplateResponse.model_validate(updated)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: int,
    hard: bool = Query(False, description="Remove the template, its tree and its submissions"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Deactivate a template, or remove it entirely with hard=true (ADMIN only).
    """
    try:
        template = await survey_service.get_template(db, template_id, current_user.organization_id)
        await survey_service.delete_template(db, template, hard=hard)
    except ValueError as e:
        raise domain_http_exception(e)
    return None
