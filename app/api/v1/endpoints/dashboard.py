"""
Score Dashboard API endpoints (0-100 scale)
"""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.user import User
from app.schemas.dashboard import PropertyScoreRow, PropertyScoreDetail, CategoryAverage, TrendPoint
from app.api.dependencies import (
    get_current_active_user,
    get_accessible_property_ids,
    check_property_access,
    domain_http_exception,
)
from app.services.dashboard_service import get_dashboard_service

router = APIRouter()
dashboard_service = get_dashboard_service()


@router.get("/properties", response_model=List[PropertyScoreRow])
async def property_overview(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Average survey score per visible property over finalized submissions.
    """
    rows = await dashboard_service.property_overview(
        db,
        current_user.organization_id,
        property_ids=await get_accessible_property_ids(db, current_user),
        date_from=date_from,
        date_to=date_to,
    )
    return [
        PropertyScoreRow(
            property_id=row["property"].id,
            property_name=row["property"].name,
            property_code=row["property"].code,
            average_score=row["average_score"],
            band=row["band"],
            submission_count=row["submission_count"],
        )
        for row in rows
    ]


@router.get("/properties/{property_id}", response_model=PropertyScoreDetail)
async def property_detail(
    property_id: int,
    months: int = Query(6, ge=1, le=36),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    Overall score, category averages and monthly trend of one property.
    """
    await check_property_access(db, current_user, property_id)
    try:
        detail = await dashboard_service.property_detail(
            db, current_user.organization_id, property_id, months=months
        )
    except ValueError as e:
        raise domain_http_exception(e)

    return PropertyScoreDetail(
        property_id=detail["property"].id,
        property_name=detail["property"].name,
        overall_score=detail["overall_score"],
        band=detail["band"],
        submission_count=detail["submission_count"],
        categories=[CategoryAverage(**c) for c in detail["categories"]],
        trend=[TrendPoint(**t) for t in detail["trend"]],
    )
