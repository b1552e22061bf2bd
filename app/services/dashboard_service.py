"""
Dashboard Service
Property score roll-ups across finalized survey submissions (0-100 scale)
"""
import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import NotFoundError
from app.models.survey import (
    SurveyTemplate,
    SurveyCategory,
    SurveySubcategory,
    SurveySubmission,
    SubmissionStatus,
)
from app.models.user import Property
from app.services.scoring_service import DISPLAY_SCALE_DASHBOARD, aggregate_scores, mean, score_band

logger = logging.getLogger(__name__)

FINAL_STATUSES = (SubmissionStatus.SUBMITTED, SubmissionStatus.REVIEWED)


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def last_months(today: date, count: int) -> List[str]:
    """YYYY-MM keys of the last `count` months, oldest first, ending with today's month"""
    year, month = today.year, today.month
    keys = []
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


class DashboardService:
    """Service for property score dashboards"""

    async def _final_submissions(
        self,
        db: AsyncSession,
        organization_id: int,
        property_ids: Optional[List[int]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[SurveySubmission]:
        query = (
            select(SurveySubmission)
            .join(SurveyTemplate, SurveySubmission.template_id == SurveyTemplate.id)
            .where(
                SurveyTemplate.organization_id == organization_id,
                SurveySubmission.status.in_(FINAL_STATUSES),
            )
            .options(
                selectinload(SurveySubmission.responses),
                selectinload(SurveySubmission.template)
                .selectinload(SurveyTemplate.categories)
                .selectinload(SurveyCategory.subcategories)
                .selectinload(SurveySubcategory.questions),
            )
            .order_by(SurveySubmission.visit_date)
        )
        if property_ids is not None:
            query = query.where(SurveySubmission.property_id.in_(property_ids))
        if date_from:
            query = query.where(SurveySubmission.visit_date >= date_from)
        if date_to:
            query = query.where(SurveySubmission.visit_date <= date_to)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _score(submission: SurveySubmission):
        return aggregate_scores(submission.template.categories, submission.responses, DISPLAY_SCALE_DASHBOARD)

    async def property_overview(
        self,
        db: AsyncSession,
        organization_id: int,
        property_ids: Optional[List[int]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[Dict]:
        """
        One row per visible property: mean overall score of its finalized
        submissions and how many there were. Properties without scored
        submissions report a score of None.
        """
        query = (
            select(Property)
            .where(Property.organization_id == organization_id, Property.is_active == True)
            .order_by(Property.name)
        )
        if property_ids is not None:
            query = query.where(Property.id.in_(property_ids))
        properties = (await db.execute(query)).scalars().all()

        submissions = await self._final_submissions(db, organization_id, property_ids, date_from, date_to)
        overall_by_property = defaultdict(list)
        count_by_property = defaultdict(int)
        for submission in submissions:
            count_by_property[submission.property_id] += 1
            score = self._score(submission)
            if score.has_data:
                overall_by_property[submission.property_id].append(score.overall)

        rows = []
        for prop in properties:
            average = mean(overall_by_property.get(prop.id, []))
            rows.append({
                "property": prop,
                "average_score": average,
                "band": score_band(average, DISPLAY_SCALE_DASHBOARD),
                "submission_count": count_by_property.get(prop.id, 0),
            })
        return rows

    async def property_detail(
        self,
        db: AsyncSession,
        organization_id: int,
        property_id: int,
        months: int = 6,
        today: Optional[date] = None,
    ) -> Dict:
        """
        Overall score, per-category averages and a monthly trend for one property.

        Categories are matched by name so that versions of the same template
        roll up together. A category average is the mean of that category's
        averages over the submissions that scored it.
        """
        prop = (await db.execute(
            select(Property).where(Property.id == property_id, Property.organization_id == organization_id)
        )).scalar_one_or_none()
        if not prop:
            raise NotFoundError("Property not found")

        today = today or date.today()
        submissions = await self._final_submissions(db, organization_id, [property_id])

        overalls = []
        category_values = defaultdict(list)
        category_order = {}
        monthly = defaultdict(list)
        for submission in submissions:
            score = self._score(submission)
            if not score.has_data:
                continue
            overalls.append(score.overall)
            monthly[month_key(submission.visit_date)].append(score.overall)
            for category in score.categories:
                category_order.setdefault(category.name, len(category_order))
                if category.average is not None:
                    category_values[category.name].append(category.average)

        overall = mean(overalls)
        return {
            "property": prop,
            "overall_score": overall,
            "band": score_band(overall, DISPLAY_SCALE_DASHBOARD),
            "submission_count": len(submissions),
            "categories": [
                {"name": name, "average": mean(category_values.get(name, []))}
                for name in sorted(category_order, key=category_order.get)
            ],
            "trend": [
                {"month": key, "average": mean(monthly.get(key, [])), "submission_count": len(monthly.get(key, []))}
                for key in last_months(today, months)
            ],
        }


# Singleton instance
_dashboard_service: Optional[DashboardService] = None


def get_dashboard_service() -> DashboardService:
    """Get or create the dashboard service singleton"""
    global _dashboard_service
    if _dashboard_service is None:
        _dashboard_service = DashboardService()
    return _dashboard_service
