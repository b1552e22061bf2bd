"""
Task API endpoints - follow-ups raised from low survey scores
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.task import Task, TaskStatus
from app.models.user import User, UserRole
from app.schemas.task import TaskUpdate, TaskResponse
from app.api.dependencies import require_roles, get_accessible_property_ids, domain_http_exception
from app.services.task_service import get_task_service

router = APIRouter()
logger = logging.getLogger(__name__)
task_service = get_task_service()

# Staff never see tasks
task_roles = require_roles(UserRole.ADMIN, UserRole.PROPERTY_MANAGER)


def build_task_response(task: Task) -> TaskResponse:
    response = TaskResponse.model_validate(task)
    response.property_name = task.property.name if task.property else None
    response.assignee_name = task.assignee.full_name if task.assignee else None
    response.submission_slug = task.submission.slug if task.submission else None
    return response


async def load_accessible_task(db: AsyncSession, task_id: int, current_user: User) -> Task:
    try:
        task = await task_service.get_task(db, task_id, current_user.organization_id)
    except ValueError as e:
        raise domain_http_exception(e)

    allowed = await get_accessible_property_ids(db, current_user)
    if allowed is not None and task.property_id not in allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this task"
        )
    return task


@router.get("/", response_model=List[TaskResponse])
async def list_tasks(
    property_id: Optional[int] = Query(None),
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    is_repeat_issue: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(task_roles),
):
    """
    List tasks (ADMIN: organization, PROPERTY_MANAGER: assigned properties).
    """
    tasks = await task_service.list_tasks(
        db,
        current_user.organization_id,
        property_ids=await get_accessible_property_ids(db, current_user),
        property_id=property_id,
        status=status_filter,
        is_repeat_issue=is_repeat_issue,
    )
    return [build_task_response(t) for t in tasks]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(task_roles),
):
    """
    Get one task.
    """
    task = await load_accessible_task(db, task_id, current_user)
    return build_task_response(task)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_data: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(task_roles),
):
    """
    Move a task to a new status.

    open -> investigating -> closed, or open -> closed. Closing requires notes.
    """
    task = await load_accessible_task(db, task_id, current_user)

    if task_data.status == TaskStatus.CLOSED and not (task_data.closing_notes or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Closing notes are required to close a task"
        )

    try:
        await task_service.update_status(
            db,
            task,
            task_data.status,
            closing_notes=task_data.closing_notes,
            closed_by=current_user.id,
        )
        task = await task_service.get_task(db, task_id, current_user.organization_id)
    except ValueError as e:
        raise domain_http_exception(e)
    return build_task_response(task)
