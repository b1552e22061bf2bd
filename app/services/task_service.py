"""
Task Service

Derives follow-up tasks from low survey scores and drives the task
status machine:

    open -> investigating -> closed
    open -> closed

closed is terminal. Any other transition raises InvalidTransitionError
before anything is written.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.exceptions import InvalidTransitionError, NotFoundError
from app.models.survey import SurveyQuestion, SurveySubmission, SurveyResponse
from app.models.task import Task, TaskStatus
from app.models.user import Property

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: Dict[TaskStatus, Set[TaskStatus]] = {
    TaskStatus.OPEN: {TaskStatus.INVESTIGATING, TaskStatus.CLOSED},
    TaskStatus.INVESTIGATING: {TaskStatus.CLOSED},
    TaskStatus.CLOSED: set(),
}


def check_transition(current: TaskStatus, requested: TaskStatus) -> None:
    """Raise InvalidTransitionError unless current -> requested is allowed"""
    current, requested = TaskStatus(current), TaskStatus(requested)
    if requested not in VALID_TRANSITIONS[current]:
        raise InvalidTransitionError("task", current.value, requested.value)


def qualifies_for_task(score: Optional[int], issue_description: Optional[str], threshold: Optional[int] = None) -> bool:
    """
    A response raises a task when its raw score is at or below the threshold
    (native scale, not normalized) and an issue was described.
    """
    if threshold is None:
        threshold = settings.LOW_SCORE_THRESHOLD
    if score is None or score > threshold:
        return False
    return bool(issue_description and issue_description.strip())


def select_task_responses(responses: Iterable, threshold: Optional[int] = None) -> List:
    """Responses that should each produce one task"""
    return [r for r in responses if qualifies_for_task(r.score, r.issue_description, threshold)]


class TaskService:
    """Service for survey-derived tasks"""

    async def create_tasks_from_submission(
        self,
        db: AsyncSession,
        submission: SurveySubmission,
        organization_id: int,
    ) -> List[Task]:
        """
        Create one task per qualifying response of a finalized submission.

        Responses that already have a task are skipped, so calling this twice
        for the same submission creates nothing the second time.
        """
        responses = (await db.execute(
            select(SurveyResponse).where(SurveyResponse.submission_id == submission.id)
        )).scalars().all()

        candidates = select_task_responses(responses)
        if not candidates:
            return []

        already_raised = set((await db.execute(
            select(Task.response_id).where(Task.response_id.in_([r.id for r in candidates]))
        )).scalars().all())
        candidates = [r for r in candidates if r.id not in already_raised]
        if not candidates:
            return []

        question_ids = list({r.question_id for r in candidates})
        question_text = dict((await db.execute(
            select(SurveyQuestion.id, SurveyQuestion.text).where(SurveyQuestion.id.in_(question_ids))
        )).all())

        assigned_to = (await db.execute(
            select(Property.primary_pm_id).where(Property.id == submission.property_id)
        )).scalar_one_or_none()

        # A closed task for the same (property, question) marks a repeat issue
        repeat_question_ids = set((await db.execute(
            select(Task.question_id).where(
                Task.property_id == submission.property_id,
                Task.status == TaskStatus.CLOSED,
                Task.question_id.in_(question_ids),
            )
        )).scalars().all())

        created = []
        for response in candidates:
            task = Task(
                organization_id=organization_id,
                property_id=submission.property_id,
                submission_id=submission.id,
                response_id=response.id,
                question_id=response.question_id,
                title=question_text.get(response.question_id, "Issue flagged"),
                description=response.issue_description,
                status=TaskStatus.OPEN,
                assigned_to=assigned_to,
                is_repeat_issue=response.question_id in repeat_question_ids,
            )
            try:
                async with db.begin_nested():
                    db.add(task)
            except IntegrityError:
                logger.info(f"Task for response {response.id} already exists, skipping")
                continue
            created.append(task)

        logger.info(
            f"Created {len(created)} task(s) from submission {submission.id} "
            f"({sum(t.is_repeat_issue for t in created)} repeat issue(s))"
        )
        return created

    async def list_tasks(
        self,
        db: AsyncSession,
        organization_id: int,
        property_ids: Optional[List[int]] = None,
        property_id: Optional[int] = None,
        status: Optional[TaskStatus] = None,
        is_repeat_issue: Optional[bool] = None,
    ) -> List[Task]:
        """Tasks of an organization; property_ids=None means all properties"""
        query = (
            select(Task)
            .where(Task.organization_id == organization_id)
            .options(
                selectinload(Task.property),
                selectinload(Task.assignee),
                selectinload(Task.submission),
            )
            .order_by(Task.created_at.desc(), Task.id.desc())
        )
        if property_ids is not None:
            query = query.where(Task.property_id.in_(property_ids))
        if property_id:
            query = query.where(Task.property_id == property_id)
        if status:
            query = query.where(Task.status == status)
        if is_repeat_issue is not None:
            query = query.where(Task.is_repeat_issue == is_repeat_issue)

        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_task(self, db: AsyncSession, task_id: int, organization_id: int) -> Task:
        result = await db.execute(
            select(Task)
            .where(Task.id == task_id, Task.organization_id == organization_id)
            .options(
                selectinload(Task.property),
                selectinload(Task.assignee),
                selectinload(Task.closer),
                selectinload(Task.response),
                selectinload(Task.submission),
            )
            .execution_options(populate_existing=True)
        )
        task = result.scalar_one_or_none()
        if not task:
            raise NotFoundError("Task not found")
        return task

    async def update_status(
        self,
        db: AsyncSession,
        task: Task,
        new_status: TaskStatus,
        closing_notes: Optional[str] = None,
        closed_by: Optional[int] = None,
    ) -> Task:
        """Move a task along its status machine; closing stamps who and when"""
        try:
            check_transition(task.status, new_status)
        except InvalidTransitionError:
            logger.warning(f"Rejected task {task.id} transition {task.status.value} -> {TaskStatus(new_status).value}")
            raise

        now = datetime.now()
        task.status = TaskStatus(new_status)
        task.updated_at = now
        if task.status == TaskStatus.CLOSED:
            task.closing_notes = closing_notes
            task.closed_at = now
            task.closed_by = closed_by

        await db.flush()
        logger.info(f"Task {task.id} moved to {task.status.value}")
        return task


# Singleton instance
_task_service: Optional[TaskService] = None


def get_task_service() -> TaskService:
    """Get or create the task service singleton"""
    global _task_service
    if _task_service is None:
        _task_service = TaskService()
    return _task_service
