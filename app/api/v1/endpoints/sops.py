"""
SOP API endpoints
Checklist templates, recurring assignments, completions and the SOP dashboard
"""
import logging
from datetime import date, datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.sop import SopTemplate, SopAssignment, SopCompletion
from app.models.user import User, UserRole
from app.schemas.sop import (
    SopTemplateCreate,
    SopTemplateUpdate,
    SopTemplateResponse,
    SopTemplateSummary,
    SopSectionResponse,
    SopItemResponse,
    SopAssignmentCreate,
    SopAssignmentUpdate,
    SopAssignmentResponse,
    SopCompletionResponse,
    SopItemCompletionResponse,
    CompletionOpen,
    ItemCheck,
    ItemCheckResponse,
    MySopResponse,
    SopDashboardRow,
)
from app.api.dependencies import (
    get_current_active_user,
    require_roles,
    get_accessible_property_ids,
    check_property_access,
    domain_http_exception,
)
from app.services.sop_schedule import compute_current_due_date
from app.services.sop_service import get_sop_service

router = APIRouter()
logger = logging.getLogger(__name__)
sop_service = get_sop_service()


def build_template_response(template: SopTemplate) -> SopTemplateResponse:
    ungrouped = sorted((i for i in template.items if i.section_id is None), key=lambda i: (i.sort_order, i.id))
    return SopTemplateResponse(
        id=template.id,
        organization_id=template.organization_id,
        name=template.name,
        description=template.description,
        is_active=template.is_active,
        created_at=template.created_at,
        updated_at=template.updated_at,
        sections=[SopSectionResponse.model_validate(s) for s in template.sections],
        ungrouped_items=[SopItemResponse.model_validate(i) for i in ungrouped],
    )


def build_completion_response(completion: SopCompletion, total_items: int) -> SopCompletionResponse:
    return SopCompletionResponse(
        id=completion.id,
        assignment_id=completion.assignment_id,
        due_date=completion.due_date,
        status=completion.status,
        completed_at=completion.completed_at,
        checked_count=sum(1 for ic in completion.item_completions if ic.is_checked),
        total_items=total_items,
        item_completions=[SopItemCompletionResponse.model_validate(ic) for ic in completion.item_completions],
    )


async def check_assignment_access(db: AsyncSession, assignment: SopAssignment, current_user: User) -> None:
    """The assignee works the checklist; admins and the property's managers may look on"""
    if assignment.user_id == current_user.id or current_user.role == UserRole.ADMIN:
        return
    if current_user.role == UserRole.PROPERTY_MANAGER:
        allowed = await get_accessible_property_ids(db, current_user)
        if assignment.property_id in allowed:
            return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You do not have access to this SOP assignment"
    )


# ==================== TEMPLATES ====================

@router.get("/templates", response_model=List[SopTemplateSummary])
async def list_sop_templates(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List SOP templates with item and assignment counts.
    """
    rows = await sop_service.list_templates(db, current_user.organization_id)
    return [
        SopTemplateSummary(
            id=row["template"].id,
            name=row["template"].name,
            description=row["template"].description,
            is_active=row["template"].is_active,
            item_count=row["item_count"],
            assignment_count=row["assignment_count"],
            created_at=row["template"].created_at,
        )
        for row in rows
    ]


@router.post("/templates", response_model=SopTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_sop_template(
    template_data: SopTemplateCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Create an SOP template with sections and items (ADMIN only).
    """
    try:
        template = await sop_service.create_template(db, current_user.organization_id, template_data)
    except ValueError as e:
        raise domain_http_exception(e)
    return build_template_response(template)


@router.get("/templates/{template_id}", response_model=SopTemplateResponse)
async def get_sop_template(
    template_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Get an SOP template: sections with their items, then ungrouped items.
    """
    try:
        template = await sop_service.get_template(db, template_id, current_user.organization_id)
    except ValueError as e:
        raise domain_http_exception(e)
    return build_template_response(template)


@router.patch("/templates/{template_id}", response_model=SopTemplateResponse)
async def update_sop_template(
    template_id: int,
    template_data: SopTemplateUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Rename an SOP template or replace its content (ADMIN only).
    """
    try:
        template = await sop_service.get_template(db, template_id, current_user.organization_id)
        template = await sop_service.update_template(db, template, template_data)
    except ValueError as e:
        raise domain_http_exception(e)
    return build_template_response(template)


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sop_template(
    template_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Delete an SOP template with its assignments and history (ADMIN only).
    """
    try:
        template = await sop_service.get_template(db, template_id, current_user.organization_id)
    except ValueError as e:
        raise domain_http_exception(e)
    await sop_service.delete_template(db, template)
    return None


# ==================== ASSIGNMENTS ====================

@router.get("/templates/{template_id}/assignments", response_model=List[SopAssignmentResponse])
async def list_sop_assignments(
    template_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.PROPERTY_MANAGER)),
):
    """
    List assignments of a template (ADMIN or PROPERTY_MANAGER).
    """
    try:
        await sop_service.get_template(db, template_id, current_user.organization_id)
    except ValueError as e:
        raise domain_http_exception(e)

    assignments = await sop_service.list_assignments_for_template(db, template_id)
    allowed = await get_accessible_property_ids(db, current_user)
    return [
        SopAssignmentResponse.model_validate(a)
        for a in assignments
        if allowed is None or a.property_id in allowed
    ]


@router.post(
    "/templates/{template_id}/assignments",
    response_model=SopAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_sop_assignment(
    template_id: int,
    assignment_data: SopAssignmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Assign an SOP to a user at a property (ADMIN only).
    """
    await check_property_access(db, current_user, assignment_data.property_id)
    assignee = (await db.execute(
        select(User).where(
            User.id == assignment_data.user_id,
            User.organization_id == current_user.organization_id,
        )
    )).scalar_one_or_none()
    if not assignee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    try:
        template = await sop_service.get_template(db, template_id, current_user.organization_id)
        assignment = await sop_service.create_assignment(db, template, assignment_data)
    except ValueError as e:
        raise domain_http_exception(e)
    return SopAssignmentResponse.model_validate(assignment)


@router.patch("/assignments/{assignment_id}", response_model=SopAssignmentResponse)
async def update_sop_assignment(
    assignment_id: int,
    assignment_data: SopAssignmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Change frequency, deadline or active flag of an assignment (ADMIN only).
    """
    try:
        assignment = await sop_service.get_assignment(db, assignment_id, current_user.organization_id)
        assignment = await sop_service.update_assignment(db, assignment, assignment_data)
    except ValueError as e:
        raise domain_http_exception(e)
    return SopAssignmentResponse.model_validate(assignment)


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sop_assignment(
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    """
    Delete an assignment and its completion history (ADMIN only).
    """
    try:
        assignment = await sop_service.get_assignment(db, assignment_id, current_user.organization_id)
    except ValueError as e:
        raise domain_http_exception(e)
    await sop_service.delete_assignment(db, assignment)
    return None


# ==================== MY SOPS ====================

@router.get("/my", response_model=List[MySopResponse])
async def list_my_sops(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    The caller's active SOPs with the current period's due date, progress
    and overdue flag.
    """
    rows = await sop_service.get_assignments_for_user(db, current_user.id)
    result = []
    for row in rows:
        assignment = row["assignment"]
        items = sorted(assignment.template.items, key=lambda i: (i.sort_order, i.id))
        completion = row["current_completion"]
        result.append(MySopResponse(
            assignment=SopAssignmentResponse.model_validate(assignment),
            template_id=assignment.template.id,
            template_name=assignment.template.name,
            property_id=assignment.property.id,
            property_name=assignment.property.name,
            items=[SopItemResponse.model_validate(i) for i in items],
            current_due_date=row["current_due_date"],
            current_completion=build_completion_response(completion, len(items)) if completion else None,
            is_overdue=row["is_overdue"],
        ))
    return result


# ==================== COMPLETIONS ====================

@router.post("/completions", response_model=SopCompletionResponse)
async def open_sop_completion(
    completion_data: CompletionOpen,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Get or create the completion of an assignment for a due date
    (defaults to the current period).
    """
    try:
        assignment = await sop_service.get_assignment(db, completion_data.assignment_id, current_user.organization_id)
    except ValueError as e:
        raise domain_http_exception(e)
    await check_assignment_access(db, assignment, current_user)

    due_date = completion_data.due_date or compute_current_due_date(assignment.frequency, assignment.deadline_day)
    completion = await sop_service.get_or_create_completion(db, assignment, due_date)
    total = await sop_service.count_template_items(db, assignment.template_id)
    return build_completion_response(completion, total)


@router.get("/completions/{completion_id}", response_model=SopCompletionResponse)
async def get_sop_completion(
    completion_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Get a completion with its item checks and progress.
    """
    try:
        completion = await sop_service.get_completion(db, completion_id=completion_id)
    except ValueError as e:
        raise domain_http_exception(e)
    if completion.assignment.template.organization_id != current_user.organization_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="SOP completion not found"
        )
    await check_assignment_access(db, completion.assignment, current_user)

    total = await sop_service.count_template_items(db, completion.assignment.template_id)
    return build_completion_response(completion, total)


@router.put("/completions/{completion_id}/items/{item_id}", response_model=ItemCheckResponse)
async def check_sop_item(
    completion_id: int,
    item_id: int,
    check_data: ItemCheck,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Check or uncheck one item. The completion becomes completed once every
    item is checked and returns to pending when one is unchecked.
    """
    try:
        completion = await sop_service.get_completion(db, completion_id=completion_id)
    except ValueError as e:
        raise domain_http_exception(e)
    if completion.assignment.template.organization_id != current_user.organization_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="SOP completion not found"
        )
    await check_assignment_access(db, completion.assignment, current_user)

    try:
        item_completion = await sop_service.set_item_checked(
            db,
            completion,
            item_id,
            check_data.is_checked,
            note=check_data.note,
            note_given="note" in check_data.model_fields_set,
        )
    except ValueError as e:
        raise domain_http_exception(e)

    completion = await sop_service.get_completion(db, completion_id=completion_id)
    total = await sop_service.count_template_items(db, completion.assignment.template_id)
    return ItemCheckResponse(
        item_completion=SopItemCompletionResponse.model_validate(item_completion),
        completion=build_completion_response(completion, total),
    )


# ==================== DASHBOARD ====================

@router.get("/dashboard", response_model=List[SopDashboardRow])
async def sop_dashboard(
    property_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(completed|overdue|pending)$"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.PROPERTY_MANAGER)),
):
    """
    Completion rows with progress and display status (ADMIN or PROPERTY_MANAGER).
    """
    rows = await sop_service.get_dashboard_rows(
        db,
        current_user.organization_id,
        property_ids=await get_accessible_property_ids(db, current_user),
        property_id=property_id,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        status=status_filter,
        now=datetime.now(),
    )
    return [
        SopDashboardRow(
            completion_id=row["completion"].id,
            assignment_id=row["assignment"].id,
            template_id=row["template"].id,
            template_name=row["template"].name,
            property_id=row["property"].id,
            property_name=row["property"].name,
            user_id=row["user"].id,
            user_name=row["user"].full_name,
            due_date=row["completion"].due_date,
            deadline_time=row["assignment"].deadline_time,
            status=row["completion"].status,
            display_status=row["display_status"],
            completed_at=row["completion"].completed_at,
            checked_count=row["checked_count"],
            total_items=row["total_items"],
        )
        for row in rows
    ]
