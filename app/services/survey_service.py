"""
Survey Service
Versioned survey templates, submissions and their scoring
"""
import logging
import re
from datetime import date, datetime
from typing import Dict, List, Optional, Set

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    SubmissionValidationError,
    TemplateValidationError,
)
from app.models.survey import (
    SurveyTemplate,
    SurveyCategory,
    SurveySubcategory,
    SurveyQuestion,
    SurveySubmission,
    SurveyResponse,
    SubmissionStatus,
    SurveyType,
)
from app.models.task import Task
from app.models.user import Property
from app.services.scoring_service import SurveyScore, aggregate_scores, DISPLAY_SCALE_SUBMISSION
from app.services.task_service import get_task_service

logger = logging.getLogger(__name__)


SUBMISSION_TRANSITIONS: Dict[SubmissionStatus, Set[SubmissionStatus]] = {
    SubmissionStatus.DRAFT: {SubmissionStatus.SUBMITTED},
    SubmissionStatus.SUBMITTED: {SubmissionStatus.REVIEWED},
    SubmissionStatus.REVIEWED: set(),
}


def check_submission_transition(current: SubmissionStatus, requested: SubmissionStatus) -> None:
    current, requested = SubmissionStatus(current), SubmissionStatus(requested)
    if requested not in SUBMISSION_TRANSITIONS[current]:
        raise InvalidTransitionError("submission", current.value, requested.value)


def kebab(value: str) -> str:
    """'Front Desk Audit' -> 'front-desk-audit'"""
    return re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")


def _template_tree_options(loader=None):
    loader = loader.selectinload(SurveyTemplate.categories) if loader is not None else selectinload(SurveyTemplate.categories)
    return loader.selectinload(SurveyCategory.subcategories).selectinload(SurveySubcategory.questions)


def iter_questions(template: SurveyTemplate):
    for category in template.categories:
        for subcategory in category.subcategories:
            for question in subcategory.questions:
                yield question


class SurveyService:
    """Service for survey templates and submissions"""

    # ==================== TEMPLATES ====================

    async def list_templates(self, db: AsyncSession, organization_id: int, active_only: bool = False) -> List[Dict]:
        """Templates of an organization with category and question counts"""
        query = (
            select(SurveyTemplate)
            .where(SurveyTemplate.organization_id == organization_id)
            .order_by(SurveyTemplate.name, SurveyTemplate.version.desc())
        )
        if active_only:
            query = query.where(SurveyTemplate.is_active == True)
        templates = (await db.execute(query)).scalars().all()
        if not templates:
            return []

        template_ids = [t.id for t in templates]
        category_counts = dict((await db.execute(
            select(SurveyCategory.template_id, func.count(SurveyCategory.id))
            .where(SurveyCategory.template_id.in_(template_ids))
            .group_by(SurveyCategory.template_id)
        )).all())
        question_counts = dict((await db.execute(
            select(SurveyCategory.template_id, func.count(SurveyQuestion.id))
            .join(SurveySubcategory, SurveySubcategory.category_id == SurveyCategory.id)
            .join(SurveyQuestion, SurveyQuestion.subcategory_id == SurveySubcategory.id)
            .where(SurveyCategory.template_id.in_(template_ids))
            .group_by(SurveyCategory.template_id)
        )).all())

        return [
            {
                "template": t,
                "category_count": category_counts.get(t.id, 0),
                "question_count": question_counts.get(t.id, 0),
            }
            for t in templates
        ]

    async def get_template(self, db: AsyncSession, template_id: int, organization_id: int) -> SurveyTemplate:
        result = await db.execute(
            select(SurveyTemplate)
            .where(
                SurveyTemplate.id == template_id,
                SurveyTemplate.organization_id == organization_id,
            )
            .options(_template_tree_options())
            .execution_options(populate_existing=True)
        )
        template = result.scalar_one_or_none()
        if not template:
            raise NotFoundError("Survey template not found")
        return template

    @staticmethod
    def _validate_tree(categories) -> None:
        if not categories:
            raise TemplateValidationError("A survey template needs at least one category")

        for category in categories:
            if category.weight is not None and category.weight < 0:
                raise TemplateValidationError(f"Category '{category.name}' has a negative weight")
            subcategories = category.resolved_subcategories()
            if not subcategories:
                raise TemplateValidationError(f"Category '{category.name}' has no questions")
            for subcategory in subcategories:
                if not subcategory.questions:
                    raise TemplateValidationError(
                        f"Subcategory '{subcategory.name}' of '{category.name}' has no questions"
                    )
                for question in subcategory.questions:
                    if question.scale_min >= question.scale_max:
                        raise TemplateValidationError(
                            f"Question '{question.text}' needs scale_min < scale_max "
                            f"(got {question.scale_min}..{question.scale_max})"
                        )

    def _build_tree(self, template: SurveyTemplate, categories) -> None:
        """Attach a validated category tree to a template (flushed by the caller)"""
        self._validate_tree(categories)

        for category_data in categories:
            category = SurveyCategory(
                name=category_data.name,
                description=category_data.description,
                weight=category_data.weight if category_data.weight is not None else 1.0,
                sort_order=category_data.sort_order,
            )
            category.subcategories = []
            for subcategory_data in category_data.resolved_subcategories():
                subcategory = SurveySubcategory(
                    name=subcategory_data.name or "",
                    description=subcategory_data.description,
                    sort_order=subcategory_data.sort_order,
                )
                subcategory.questions = [
                    SurveyQuestion(
                        text=q.text,
                        description=q.description,
                        scale_min=q.scale_min,
                        scale_max=q.scale_max,
                        is_required=q.is_required,
                        sort_order=q.sort_order,
                    )
                    for q in subcategory_data.questions
                ]
                category.subcategories.append(subcategory)
            template.categories.append(category)

    async def create_template(
        self,
        db: AsyncSession,
        organization_id: int,
        data,
        created_by: Optional[int] = None,
    ) -> SurveyTemplate:
        template = SurveyTemplate(
            organization_id=organization_id,
            name=data.name,
            description=data.description,
            survey_type=data.survey_type,
            version=1,
            is_active=True,
            created_by=created_by,
        )
        template.categories = []
        self._build_tree(template, data.categories)
        db.add(template)
        await db.flush()

        logger.info(f"Created survey template {template.id} '{template.name}' v1")
        return await self.get_template(db, template.id, organization_id)

    async def count_submissions(self, db: AsyncSession, template_id: int) -> int:
        result = await db.execute(
            select(func.count(SurveySubmission.id)).where(SurveySubmission.template_id == template_id)
        )
        return result.scalar_one()

    async def update_template(
        self,
        db: AsyncSession,
        template: SurveyTemplate,
        data,
        user_id: Optional[int] = None,
    ) -> SurveyTemplate:
        """
        Rename/describe in place. A new category tree replaces the old one in
        place while the template is unused; once submissions reference it, the
        change is written as a new version and the old row is deactivated.
        """
        if data.categories is not None and await self.count_submissions(db, template.id) > 0:
            new_template = SurveyTemplate(
                organization_id=template.organization_id,
                name=data.name if data.name is not None else template.name,
                description=data.description if "description" in data.model_fields_set else template.description,
                survey_type=template.survey_type,
                version=template.version + 1,
                is_active=True,
                parent_id=template.id,
                created_by=user_id,
            )
            new_template.categories = []
            self._build_tree(new_template, data.categories)
            template.is_active = False
            db.add(new_template)
            await db.flush()

            logger.info(
                f"Survey template {template.id} has submissions; "
                f"created version {new_template.version} as template {new_template.id}"
            )
            return await self.get_template(db, new_template.id, template.organization_id)

        if data.name is not None:
            template.name = data.name
        if "description" in data.model_fields_set:
            template.description = data.description
        if data.is_active is not None:
            template.is_active = data.is_active

        if data.categories is not None:
            self._validate_tree(data.categories)
            template.categories.clear()
            await db.flush()
            self._build_tree(template, data.categories)
            logger.info(f"Replaced category tree of unused survey template {template.id}")

        await db.flush()
        return await self.get_template(db, template.id, template.organization_id)

    async def delete_template(self, db: AsyncSession, template: SurveyTemplate, hard: bool = False) -> None:
        """Soft delete deactivates; hard delete removes the tree and every submission"""
        if not hard:
            template.is_active = False
            await db.flush()
            logger.info(f"Deactivated survey template {template.id}")
            return

        # Later versions keep their own history
        await db.execute(
            update(SurveyTemplate)
            .where(SurveyTemplate.parent_id == template.id)
            .values(parent_id=None)
        )

        submission_ids = select(SurveySubmission.id).where(SurveySubmission.template_id == template.id)
        await db.execute(delete(Task).where(Task.submission_id.in_(submission_ids)))
        await db.execute(delete(SurveyResponse).where(SurveyResponse.submission_id.in_(submission_ids)))
        await db.execute(delete(SurveySubmission).where(SurveySubmission.template_id == template.id))

        category_ids = select(SurveyCategory.id).where(SurveyCategory.template_id == template.id)
        subcategory_ids = select(SurveySubcategory.id).where(SurveySubcategory.category_id.in_(category_ids))
        await db.execute(delete(SurveyQuestion).where(SurveyQuestion.subcategory_id.in_(subcategory_ids)))
        await db.execute(delete(SurveySubcategory).where(SurveySubcategory.category_id.in_(category_ids)))
        await db.execute(delete(SurveyCategory).where(SurveyCategory.template_id == template.id))
        await db.execute(delete(SurveyTemplate).where(SurveyTemplate.id == template.id))
        await db.flush()
        logger.info(f"Hard deleted survey template {template.id}")

    # ==================== SUBMISSIONS ====================

    async def generate_slug(self, db: AsyncSession, template_name: str, property_code: str, visit_date: date) -> str:
        """template-name-property-code-YYYY-MM-DD, suffixed -2, -3... until unused"""
        base = "-".join(part for part in (kebab(template_name), kebab(property_code), visit_date.isoformat()) if part)
        taken = set((await db.execute(
            select(SurveySubmission.slug).where(SurveySubmission.slug.like(f"{base}%"))
        )).scalars().all())

        slug, counter = base, 2
        while slug in taken:
            slug = f"{base}-{counter}"
            counter += 1
        return slug

    @staticmethod
    def validate_responses(template: SurveyTemplate, responses, require_complete: bool) -> None:
        """
        Check a full response set against the template.

        Raises:
            SubmissionValidationError: unknown or duplicate question, score
                outside the question's scale, or a required question missing
                when require_complete is set
        """
        questions = {q.id: q for q in iter_questions(template)}
        seen = set()
        for response in responses:
            question = questions.get(response.question_id)
            if question is None:
                raise SubmissionValidationError(
                    f"Question {response.question_id} does not belong to this survey template"
                )
            if response.question_id in seen:
                raise SubmissionValidationError(f"Question {response.question_id} answered more than once")
            seen.add(response.question_id)
            if not question.scale_min <= response.score <= question.scale_max:
                raise SubmissionValidationError(
                    f"Score {response.score} for question {question.id} is outside "
                    f"{question.scale_min}..{question.scale_max}"
                )

        if require_complete:
            missing = [q.id for q in questions.values() if q.is_required and q.id not in seen]
            if missing:
                raise SubmissionValidationError(f"Required questions not answered: {missing}")

    async def get_submission(self, db: AsyncSession, submission_id: int, organization_id: int) -> SurveySubmission:
        result = await db.execute(
            select(SurveySubmission)
            .join(SurveyTemplate, SurveySubmission.template_id == SurveyTemplate.id)
            .where(
                SurveySubmission.id == submission_id,
                SurveyTemplate.organization_id == organization_id,
            )
            .options(
                selectinload(SurveySubmission.responses),
                selectinload(SurveySubmission.property),
                _template_tree_options(selectinload(SurveySubmission.template)),
            )
            .execution_options(populate_existing=True)
        )
        submission = result.scalar_one_or_none()
        if not submission:
            raise NotFoundError("Survey submission not found")
        return submission

    async def list_submissions(
        self,
        db: AsyncSession,
        organization_id: int,
        property_ids: Optional[List[int]] = None,
        property_id: Optional[int] = None,
        status: Optional[SubmissionStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[SurveySubmission]:
        """Submissions of an organization; property_ids=None means all properties"""
        query = (
            select(SurveySubmission)
            .join(SurveyTemplate, SurveySubmission.template_id == SurveyTemplate.id)
            .where(SurveyTemplate.organization_id == organization_id)
            .options(selectinload(SurveySubmission.template), selectinload(SurveySubmission.property))
            .order_by(SurveySubmission.visit_date.desc(), SurveySubmission.id.desc())
        )
        if property_ids is not None:
            query = query.where(SurveySubmission.property_id.in_(property_ids))
        if property_id:
            query = query.where(SurveySubmission.property_id == property_id)
        if status:
            query = query.where(SurveySubmission.status == status)
        if date_from:
            query = query.where(SurveySubmission.visit_date >= date_from)
        if date_to:
            query = query.where(SurveySubmission.visit_date <= date_to)

        result = await db.execute(query)
        return list(result.scalars().all())

    async def create_submission(
        self,
        db: AsyncSession,
        template: SurveyTemplate,
        property: Property,
        data,
        user_id: int,
    ) -> SurveySubmission:
        """Store a submission and its responses; submitting directly derives tasks"""
        status = SubmissionStatus(data.status)
        if status == SubmissionStatus.REVIEWED:
            raise InvalidTransitionError("submission", "new", status.value)
        if not template.is_active:
            raise SubmissionValidationError("Survey template is inactive")

        finalize = status == SubmissionStatus.SUBMITTED
        if finalize and not data.responses:
            raise SubmissionValidationError("A submitted survey needs at least one response")
        self.validate_responses(template, data.responses, require_complete=finalize)

        submission = SurveySubmission(
            template_id=template.id,
            property_id=property.id,
            submitted_by=user_id,
            status=status,
            visit_date=data.visit_date,
            notes=data.notes,
            slug=await self.generate_slug(db, template.name, property.code, data.visit_date),
            submitted_at=datetime.now() if finalize else None,
        )
        submission.responses = [
            SurveyResponse(
                question_id=r.question_id,
                score=r.score,
                note=r.note,
                issue_description=r.issue_description,
            )
            for r in data.responses
        ]
        db.add(submission)
        await db.flush()
        logger.info(f"Created survey submission {submission.id} ({status.value}) for property {property.id}")

        if finalize:
            await self._on_submitted(db, submission, template)
        return await self.get_submission(db, submission.id, template.organization_id)

    async def update_submission(self, db: AsyncSession, submission: SurveySubmission, data) -> SurveySubmission:
        """Edit a draft; a response list replaces every stored response"""
        if submission.status != SubmissionStatus.DRAFT:
            raise SubmissionValidationError("Only draft submissions can be edited")

        if data.visit_date is not None:
            submission.visit_date = data.visit_date
        if "notes" in data.model_fields_set:
            submission.notes = data.notes

        if data.responses is not None:
            self.validate_responses(submission.template, data.responses, require_complete=False)
            submission.responses.clear()
            await db.flush()
            for r in data.responses:
                submission.responses.append(SurveyResponse(
                    question_id=r.question_id,
                    score=r.score,
                    note=r.note,
                    issue_description=r.issue_description,
                ))

        submission.updated_at = datetime.now()
        await db.flush()
        return await self.get_submission(db, submission.id, submission.template.organization_id)

    async def submit(self, db: AsyncSession, submission: SurveySubmission) -> SurveySubmission:
        """draft -> submitted; responses are frozen and tasks are derived"""
        check_submission_transition(submission.status, SubmissionStatus.SUBMITTED)
        if not submission.responses:
            raise SubmissionValidationError("Cannot submit a survey without responses")
        self.validate_responses(submission.template, submission.responses, require_complete=True)

        submission.status = SubmissionStatus.SUBMITTED
        submission.submitted_at = datetime.now()
        await db.flush()
        logger.info(f"Survey submission {submission.id} submitted")

        await self._on_submitted(db, submission, submission.template)
        return await self.get_submission(db, submission.id, submission.template.organization_id)

    async def review(self, db: AsyncSession, submission: SurveySubmission, reviewer_id: int) -> SurveySubmission:
        """submitted -> reviewed"""
        check_submission_transition(submission.status, SubmissionStatus.REVIEWED)
        submission.status = SubmissionStatus.REVIEWED
        submission.reviewed_at = datetime.now()
        submission.reviewed_by = reviewer_id
        await db.flush()
        logger.info(f"Survey submission {submission.id} reviewed by user {reviewer_id}")
        return await self.get_submission(db, submission.id, submission.template.organization_id)

    async def delete_submission(self, db: AsyncSession, submission: SurveySubmission) -> None:
        await db.execute(delete(Task).where(Task.submission_id == submission.id))
        await db.execute(delete(SurveyResponse).where(SurveyResponse.submission_id == submission.id))
        await db.execute(delete(SurveySubmission).where(SurveySubmission.id == submission.id))
        await db.flush()
        logger.info(f"Deleted survey submission {submission.id}")

    async def _on_submitted(self, db: AsyncSession, submission: SurveySubmission, template: SurveyTemplate) -> None:
        if SurveyType(template.survey_type).value not in settings.TASK_SURVEY_TYPES:
            return
        await get_task_service().create_tasks_from_submission(db, submission, template.organization_id)

    # ==================== SCORING ====================

    @staticmethod
    def score_submission(submission: SurveySubmission, scale: int = DISPLAY_SCALE_SUBMISSION) -> SurveyScore:
        """Score tree of a loaded submission (template tree and responses loaded)"""
        return aggregate_scores(submission.template.categories, submission.responses, scale)


# Singleton instance
_survey_service: Optional[SurveyService] = None


def get_survey_service() -> SurveyService:
    """Get or create the survey service singleton"""
    global _survey_service
    if _survey_service is None:
        _survey_service = SurveyService()
    return _survey_service
