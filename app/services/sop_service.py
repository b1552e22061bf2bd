"""
SOP Service
Checklist templates, recurring assignments and per-period completions
"""
import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import NotFoundError, TemplateValidationError
from app.models.sop import (
    SopTemplate,
    SopSection,
    SopItem,
    SopAssignment,
    SopCompletion,
    SopItemCompletion,
    SopCompletionStatus,
)
from app.models.user import Property, User
from app.services.sop_schedule import (
    check_deadline_day,
    compute_current_due_date,
    derive_completion_status,
    display_status,
    is_overdue,
)

logger = logging.getLogger(__name__)


class SopService:
    """Service for SOP checklists and their completion tracking"""

    # ==================== TEMPLATES ====================

    async def list_templates(self, db: AsyncSession, organization_id: int) -> List[Dict]:
        """Templates of an organization with item and assignment counts"""
        result = await db.execute(
            select(SopTemplate)
            .where(SopTemplate.organization_id == organization_id)
            .order_by(SopTemplate.created_at.desc(), SopTemplate.id.desc())
        )
        templates = result.scalars().all()
        if not templates:
            return []

        template_ids = [t.id for t in templates]
        item_counts = dict((await db.execute(
            select(SopItem.template_id, func.count(SopItem.id))
            .where(SopItem.template_id.in_(template_ids))
            .group_by(SopItem.template_id)
        )).all())
        assignment_counts = dict((await db.execute(
            select(SopAssignment.template_id, func.count(SopAssignment.id))
            .where(SopAssignment.template_id.in_(template_ids))
            .group_by(SopAssignment.template_id)
        )).all())

        return [
            {
                "template": t,
                "item_count": item_counts.get(t.id, 0),
                "assignment_count": assignment_counts.get(t.id, 0),
            }
            for t in templates
        ]

    async def get_template(self, db: AsyncSession, template_id: int, organization_id: int) -> SopTemplate:
        result = await db.execute(
            select(SopTemplate)
            .where(
                SopTemplate.id == template_id,
                SopTemplate.organization_id == organization_id,
            )
            .options(
                selectinload(SopTemplate.sections).selectinload(SopSection.items),
                selectinload(SopTemplate.items),
            )
            .execution_options(populate_existing=True)
        )
        template = result.scalar_one_or_none()
        if not template:
            raise NotFoundError("SOP template not found")
        return template

    def _check_content(self, sections, ungrouped_items) -> None:
        if not sections and not ungrouped_items:
            raise TemplateValidationError("An SOP template needs at least one item")

    def _build_content(self, template: SopTemplate, sections, ungrouped_items) -> None:
        """Attach sections and items to a template (flushed by the caller)"""
        self._check_content(sections, ungrouped_items)

        for section_data in sections or []:
            section = SopSection(name=section_data.name, sort_order=section_data.sort_order)
            template.sections.append(section)
            for item_data in section_data.items:
                item = SopItem(content=item_data.content, sort_order=item_data.sort_order, section=section)
                template.items.append(item)

        for item_data in ungrouped_items or []:
            template.items.append(SopItem(content=item_data.content, sort_order=item_data.sort_order))

    async def create_template(self, db: AsyncSession, organization_id: int, data) -> SopTemplate:
        template = SopTemplate(
            organization_id=organization_id,
            name=data.name,
            description=data.description,
            is_active=True,
        )
        template.sections = []
        template.items = []
        self._build_content(template, data.sections, data.ungrouped_items)
        db.add(template)
        await db.flush()

        logger.info(f"Created SOP template {template.id} with {len(template.items)} items")
        return await self.get_template(db, template.id, organization_id)

    async def update_template(self, db: AsyncSession, template: SopTemplate, data) -> SopTemplate:
        """Edit name/description/active flag; replace the content when sections or items are given"""
        if data.name is not None:
            template.name = data.name
        if "description" in data.model_fields_set:
            template.description = data.description
        if data.is_active is not None:
            template.is_active = data.is_active

        if data.sections is not None or data.ungrouped_items is not None:
            self._check_content(data.sections, data.ungrouped_items)
            item_ids = select(SopItem.id).where(SopItem.template_id == template.id)
            await db.execute(delete(SopItemCompletion).where(SopItemCompletion.item_id.in_(item_ids)))
            template.items.clear()
            template.sections.clear()
            await db.flush()
            self._build_content(template, data.sections, data.ungrouped_items)
            await db.flush()
            await self._rederive_completions(db, template.id)
            logger.info(f"Replaced content of SOP template {template.id}")

        await db.flush()
        return await self.get_template(db, template.id, template.organization_id)

    async def _rederive_completions(self, db: AsyncSession, template_id: int, now: Optional[datetime] = None) -> None:
        """Recount every completion of the template's assignments against its current items"""
        now = now or datetime.now()
        total = await self.count_template_items(db, template_id)
        checked = (
            select(func.count(SopItemCompletion.id))
            .where(
                SopItemCompletion.completion_id == SopCompletion.id,
                SopItemCompletion.is_checked == True,
            )
            .correlate(SopCompletion)
            .scalar_subquery()
        )
        result = await db.execute(
            select(SopCompletion, checked)
            .join(SopAssignment, SopCompletion.assignment_id == SopAssignment.id)
            .where(SopAssignment.template_id == template_id)
            .execution_options(populate_existing=True)
        )
        for completion, checked_count in result.all():
            previous = completion.status
            completion.status, completion.completed_at = derive_completion_status(
                completion.status, completion.completed_at, total, checked_count, now
            )
            if completion.status != previous:
                logger.info(
                    f"SOP completion {completion.id} {previous.value} -> {completion.status.value} "
                    f"after content change ({checked_count}/{total} items checked)"
                )
        await db.flush()

    async def delete_template(self, db: AsyncSession, template: SopTemplate) -> None:
        """Remove a template with its content, assignments and completion history"""
        assignment_ids = select(SopAssignment.id).where(SopAssignment.template_id == template.id)
        await self._delete_completions(db, assignment_ids)
        await db.execute(delete(SopAssignment).where(SopAssignment.template_id == template.id))
        await db.execute(delete(SopItem).where(SopItem.template_id == template.id))
        await db.execute(delete(SopSection).where(SopSection.template_id == template.id))
        await db.execute(delete(SopTemplate).where(SopTemplate.id == template.id))
        await db.flush()
        logger.info(f"Deleted SOP template {template.id}")

    async def _delete_completions(self, db: AsyncSession, assignment_ids) -> None:
        completion_ids = select(SopCompletion.id).where(SopCompletion.assignment_id.in_(assignment_ids))
        await db.execute(delete(SopItemCompletion).where(SopItemCompletion.completion_id.in_(completion_ids)))
        await db.execute(delete(SopCompletion).where(SopCompletion.assignment_id.in_(assignment_ids)))

    # ==================== ASSIGNMENTS ====================

    async def list_assignments_for_template(self, db: AsyncSession, template_id: int) -> Sequence[SopAssignment]:
        result = await db.execute(
            select(SopAssignment)
            .join(Property, SopAssignment.property_id == Property.id)
            .join(User, SopAssignment.user_id == User.id)
            .where(SopAssignment.template_id == template_id)
            .options(selectinload(SopAssignment.property), selectinload(SopAssignment.user))
            .order_by(Property.name, User.full_name)
        )
        return result.scalars().all()

    async def get_assignment(self, db: AsyncSession, assignment_id: int, organization_id: int) -> SopAssignment:
        result = await db.execute(
            select(SopAssignment)
            .join(SopTemplate, SopAssignment.template_id == SopTemplate.id)
            .where(
                SopAssignment.id == assignment_id,
                SopTemplate.organization_id == organization_id,
            )
            .options(selectinload(SopAssignment.template))
        )
        assignment = result.scalar_one_or_none()
        if not assignment:
            raise NotFoundError("SOP assignment not found")
        return assignment

    async def create_assignment(self, db: AsyncSession, template: SopTemplate, data) -> SopAssignment:
        duplicate = await db.execute(
            select(SopAssignment.id).where(
                SopAssignment.template_id == template.id,
                SopAssignment.property_id == data.property_id,
                SopAssignment.user_id == data.user_id,
            )
        )
        if duplicate.scalar_one_or_none():
            raise TemplateValidationError("This user is already assigned this SOP at this property")

        assignment = SopAssignment(
            template_id=template.id,
            property_id=data.property_id,
            user_id=data.user_id,
            frequency=data.frequency,
            deadline_time=data.deadline_time,
            deadline_day=data.deadline_day,
            notify_on_overdue=data.notify_on_overdue,
            is_active=True,
        )
        db.add(assignment)
        await db.flush()
        await db.refresh(assignment)
        return assignment

    async def update_assignment(self, db: AsyncSession, assignment: SopAssignment, data) -> SopAssignment:
        fields = data.model_fields_set
        check_deadline_day(
            data.frequency if "frequency" in fields else assignment.frequency,
            data.deadline_day if "deadline_day" in fields else assignment.deadline_day,
        )
        for field_name in data.model_fields_set:
            setattr(assignment, field_name, getattr(data, field_name))
        await db.flush()
        await db.refresh(assignment)
        return assignment

    async def delete_assignment(self, db: AsyncSession, assignment: SopAssignment) -> None:
        await self._delete_completions(db, [assignment.id])
        await db.execute(delete(SopAssignment).where(SopAssignment.id == assignment.id))
        await db.flush()

    async def get_assignments_for_user(
        self,
        db: AsyncSession,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> List[Dict]:
        """
        Active assignments of a user with the current period's due date,
        completion (if already opened) and overdue flag.
        """
        now = now or datetime.now()
        result = await db.execute(
            select(SopAssignment)
            .join(SopTemplate, SopAssignment.template_id == SopTemplate.id)
            .join(Property, SopAssignment.property_id == Property.id)
            .where(
                SopAssignment.user_id == user_id,
                SopAssignment.is_active == True,
                SopTemplate.is_active == True,
            )
            .options(
                selectinload(SopAssignment.template).selectinload(SopTemplate.items),
                selectinload(SopAssignment.property),
            )
            .order_by(Property.name, SopTemplate.name)
        )
        assignments = result.scalars().all()

        rows = []
        for assignment in assignments:
            due_date = compute_current_due_date(assignment.frequency, assignment.deadline_day, now)
            completion = await self._find_completion(db, assignment.id, due_date, with_items=True)
            completed = completion is not None and completion.status == SopCompletionStatus.COMPLETED
            rows.append({
                "assignment": assignment,
                "current_due_date": due_date,
                "current_completion": completion,
                "is_overdue": not completed and is_overdue(due_date, assignment.deadline_time, now),
            })
        return rows

    # ==================== COMPLETIONS ====================

    async def _find_completion(
        self,
        db: AsyncSession,
        assignment_id: int,
        due_date: date,
        with_items: bool = False,
    ) -> Optional[SopCompletion]:
        query = select(SopCompletion).where(
            SopCompletion.assignment_id == assignment_id,
            SopCompletion.due_date == due_date,
        )
        if with_items:
            query = query.options(selectinload(SopCompletion.item_completions))
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create_completion(self, db: AsyncSession, assignment: SopAssignment, due_date: date) -> SopCompletion:
        """
        Return the completion for (assignment, due_date), creating it on first touch.
        A concurrent insert of the same pair loses on the unique constraint and
        re-reads the stored row.
        """
        completion = await self._find_completion(db, assignment.id, due_date)
        if completion is None:
            try:
                async with db.begin_nested():
                    db.add(SopCompletion(
                        assignment_id=assignment.id,
                        due_date=due_date,
                        status=SopCompletionStatus.PENDING,
                    ))
                logger.info(f"Opened SOP completion for assignment {assignment.id} due {due_date}")
            except IntegrityError:
                logger.info(f"SOP completion for assignment {assignment.id} due {due_date} already exists")

        return await self.get_completion(db, assignment_id=assignment.id, due_date=due_date)

    async def get_completion(
        self,
        db: AsyncSession,
        completion_id: Optional[int] = None,
        assignment_id: Optional[int] = None,
        due_date: Optional[date] = None,
    ) -> SopCompletion:
        query = select(SopCompletion).options(
            selectinload(SopCompletion.item_completions),
            selectinload(SopCompletion.assignment).selectinload(SopAssignment.template),
        ).execution_options(populate_existing=True)
        if completion_id is not None:
            query = query.where(SopCompletion.id == completion_id)
        else:
            query = query.where(
                SopCompletion.assignment_id == assignment_id,
                SopCompletion.due_date == due_date,
            )
        result = await db.execute(query)
        completion = result.scalar_one_or_none()
        if not completion:
            raise NotFoundError("SOP completion not found")
        return completion

    async def count_template_items(self, db: AsyncSession, template_id: int) -> int:
        result = await db.execute(
            select(func.count(SopItem.id)).where(SopItem.template_id == template_id)
        )
        return result.scalar_one()

    async def set_item_checked(
        self,
        db: AsyncSession,
        completion: SopCompletion,
        item_id: int,
        is_checked: bool,
        note: Optional[str] = None,
        note_given: bool = False,
        now: Optional[datetime] = None,
    ) -> SopItemCompletion:
        """
        Check or uncheck one item, then re-derive the completion status:
        completed once every template item is checked, back to pending when
        any item is unchecked again.
        """
        now = now or datetime.now()
        template_id = completion.assignment.template_id

        item_result = await db.execute(
            select(SopItem.id).where(SopItem.id == item_id, SopItem.template_id == template_id)
        )
        if item_result.scalar_one_or_none() is None:
            raise NotFoundError("Item does not belong to this SOP")

        item_completion = await self._find_item_completion(db, completion.id, item_id)
        if item_completion is None:
            try:
                async with db.begin_nested():
                    item_completion = SopItemCompletion(
                        completion_id=completion.id,
                        item_id=item_id,
                        is_checked=is_checked,
                        note=note,
                        checked_at=now if is_checked else None,
                    )
                    db.add(item_completion)
            except IntegrityError:
                item_completion = await self._find_item_completion(db, completion.id, item_id)
                item_completion = self._apply_check(item_completion, is_checked, note, note_given, now)
        else:
            item_completion = self._apply_check(item_completion, is_checked, note, note_given, now)
        await db.flush()

        total = await self.count_template_items(db, template_id)
        checked_result = await db.execute(
            select(func.count(SopItemCompletion.id)).where(
                SopItemCompletion.completion_id == completion.id,
                SopItemCompletion.is_checked == True,
            )
        )
        checked = checked_result.scalar_one()

        previous = completion.status
        completion.status, completion.completed_at = derive_completion_status(
            completion.status, completion.completed_at, total, checked, now
        )
        if completion.status != previous:
            logger.info(
                f"SOP completion {completion.id} {previous.value} -> {completion.status.value} "
                f"({checked}/{total} items checked)"
            )
        await db.flush()
        return item_completion

    async def _find_item_completion(self, db: AsyncSession, completion_id: int, item_id: int) -> Optional[SopItemCompletion]:
        result = await db.execute(
            select(SopItemCompletion).where(
                SopItemCompletion.completion_id == completion_id,
                SopItemCompletion.item_id == item_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _apply_check(item_completion: SopItemCompletion, is_checked: bool, note, note_given: bool, now: datetime):
        item_completion.is_checked = is_checked
        item_completion.checked_at = now if is_checked else None
        if note_given:
            item_completion.note = note
        return item_completion

    # ==================== DASHBOARD ====================

    async def get_dashboard_rows(
        self,
        db: AsyncSession,
        organization_id: int,
        property_ids: Optional[List[int]] = None,
        property_id: Optional[int] = None,
        user_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        status: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Dict]:
        """
        Completion rows with progress counts.
        property_ids=None means every property of the organization.
        """
        now = now or datetime.now()
        query = (
            select(SopCompletion, SopAssignment, SopTemplate, Property, User)
            .join(SopAssignment, SopCompletion.assignment_id == SopAssignment.id)
            .join(SopTemplate, SopAssignment.template_id == SopTemplate.id)
            .join(Property, SopAssignment.property_id == Property.id)
            .join(User, SopAssignment.user_id == User.id)
            .where(SopTemplate.organization_id == organization_id)
        )
        if property_ids is not None:
            query = query.where(SopAssignment.property_id.in_(property_ids))
        if property_id:
            query = query.where(SopAssignment.property_id == property_id)
        if user_id:
            query = query.where(SopAssignment.user_id == user_id)
        if date_from:
            query = query.where(SopCompletion.due_date >= date_from)
        if date_to:
            query = query.where(SopCompletion.due_date <= date_to)
        query = query.order_by(SopCompletion.due_date.desc(), Property.name)

        rows = (await db.execute(query)).all()
        if not rows:
            return []

        completion_ids = [r[0].id for r in rows]
        checked_counts = dict((await db.execute(
            select(SopItemCompletion.completion_id, func.count(SopItemCompletion.id))
            .where(
                SopItemCompletion.completion_id.in_(completion_ids),
                SopItemCompletion.is_checked == True,
            )
            .group_by(SopItemCompletion.completion_id)
        )).all())

        template_ids = list({r[2].id for r in rows})
        total_counts = dict((await db.execute(
            select(SopItem.template_id, func.count(SopItem.id))
            .where(SopItem.template_id.in_(template_ids))
            .group_by(SopItem.template_id)
        )).all())

        dashboard = []
        for completion, assignment, template, prop, user in rows:
            bucket = display_status(completion.status, completion.due_date, assignment.deadline_time, now)
            if status and bucket != status:
                continue
            dashboard.append({
                "completion": completion,
                "assignment": assignment,
                "template": template,
                "property": prop,
                "user": user,
                "checked_count": checked_counts.get(completion.id, 0),
                "total_items": total_counts.get(template.id, 0),
                "display_status": bucket,
            })
        return dashboard


# Singleton instance
_sop_service: Optional[SopService] = None


def get_sop_service() -> SopService:
    """Get or create the SOP service singleton"""
    global _sop_service
    if _sop_service is None:
        _sop_service = SopService()
    return _sop_service
