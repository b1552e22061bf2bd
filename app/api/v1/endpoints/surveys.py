"""
Survey Submission API endpoints
"""
import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.survey import SurveySubmission, SubmissionStatus
from app.models.user import User, UserRole
from app.schemas.survey import (
    SubmissionCreate,
    SubmissionUpdate,
    SubmissionResponse,
    SubmissionSummary,
    SurveyScoreResponse,
    ResponseOutput,
)
from app.api.dependencies import (
    get_current_active_user,
    require_roles,
    get_accessible_property_ids,
    check_property_access,
    domain_http_exception,
)
from app.services.survey_service import get_survey_service

router = APIRouter()
logger = logging.getLogger(__name__)
survey_service = get_survey_service()


def build_submission_response(submission: SurveySubmission) -> SubmissionResponse:
    """Submission with its responses and score tree on the 0-10 scale"""
    score = survey_service.score_submission(submission)
    return SubmissionResponse(
        id=submission.id,
        template_id=submission.template_id,
        property_id=submission.property_id,
        submitted_by=submission.submitted_by,
        status=submission.status,
        visit_date=submission.visit_date,
        notes=submission.notes,
        slug=submission.slug,
        submitted_at=submission.submitted_at,
        reviewed_at=submission.reviewed_at,
        reviewed_by=submission.reviewed_by,
        created_at=submission.created_at,
        updated_at=submission.updated_at,
        responses=[ResponseOutput.model_validate(r) for r in submission.responses],
        score=SurveyScoreResponse.model_validate(score),
    )


async def load_accessible_submission(db: AsyncSession, submission_id: int, current_user: User) -> SurveySubmission:
    """Load a submission of the caller's organization on a property the caller can see"""
    try:
        submission = await survey_service.get_submission(db, submission_id, current_user.organization_id)
    except ValueError as e:
        raise domain_http_exception(e)

    allowed = await get_accessible_property_ids(db, current_user)
    if allowed is not None and submission.property_id not in allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this submission"
        )
    return submission


@router.get("/", response_model=List[SubmissionSummary])
async def list_submissions(
    property_id: Optional[int] = Query(None),
    status_filter: Optional[SubmissionStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List submissions on the caller's properties, newest visit first.
    """
    submissions = await survey_service.list_submissions(
        db,
        current_user.organization_id,
        property_ids=await get_accessible_property_ids(db, current_user),
        property_id=property_id,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
    )
    return [
        SubmissionSummary(
            id=s.id,
            template_id=s.template_id,
            template_name=s.template.name,
            template_version=s.template.version,
            property_id=s.property_id,
            property_name=s.property.name,
            submitted_by=s.submitted_by,
            status=s.status,
            visit_date=s.visit_date,
            slug=s.slug,
            submitted_at=s.submitted_at,
            reviewed_at=s.reviewed_at,
            created_at=s.created_at,
        )
        for s in submissions
    ]


@router.post("/", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    submission_data: SubmissionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Create a submission as draft, or directly as submitted.
    Submitting derives follow-up tasks from low scores.
    """
    prop = await check_property_access(db, current_user, submission_data.property_id)
    try:
        template = await survey_service.get_template(db, submission_data.template_id, current_user.organization_id)
        submission = await survey_service.create_submission(db, template, prop, submission_data, current_user.id)
    except ValueError as e:
        raise domain_http_exception(e)
    return build_submission_response(submission)


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Get a submission with its responses, score tree and band.
    """
    submission = await load_accessible_submission(db, submission_id, current_user)
    return build_submission_response(submission)


@router.patch("/{submission_id}", response_model=SubmissionResponse)
async def update_submission(
    submission_id: int,
    submission_data: SubmissionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Edit a draft submission (submitter only).
    """
    submission = await load_accessible_submission(db, submission_id, current_user)
    if submission.submitted_by != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the submitter can edit this submission"
        )

    try:
        submission = await survey_service.update_submission(db, submission, submission_data)
    except ValueError as e:
        raise domain_http_exception(e)
    return build_submission_response(submission)


@router.post("/{submission_id}/submit", response_model=SubmissionResponse)
async def submit_submission(
    submission_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Finalize a draft (draft -> submitted) and derive tasks from low scores.
    """
    submission = await load_accessible_submission(db, submission_id, current_user)
    if submission.submitted_by != current_user.id and current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the submitter can submit this survey"
        )

    try:
        submission = await survey_service.submit(db, submission)
    except ValueError as e:
        raise domain_http_exception(e)
    return build_submission_response(submission)


@router.post("/{submission_id}/review", response_model=SubmissionResponse)
async def review_submission(
    submission_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.PROPERTY_MANAGER)),
):
    """
    Mark a submitted survey as reviewed (ADMIN or PROPERTY_MANAGER).
    """
    submission = await load_accessible_submission(db, submission_id, current_user)
    try:
        submission = await survey_service.review(db, submission, current_user.id)
    except ValueError as e:
        raise domain_http_exception(e)
    return build_submission_response(submission)


@router.delete("/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_submission(
    submission_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Delete a submission (ADMIN, or the submitter while it is a draft).
    """
    submission = await load_accessible_submission(db, submission_id, current_user)
    is_own_draft = submission.submitted_by == current_user.id and submission.status == SubmissionStatus.DRAFT
    if current_user.role != UserRole.ADMIN and not is_own_draft:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can delete finalized submissions"
        )

    await survey_service.delete_submission(db, submission)
    return None
