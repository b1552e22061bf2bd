"""
Pydantic schemas for score dashboards (0-100 scale)
"""
from pydantic import BaseModel
from typing import Optional, List


class PropertyScoreRow(BaseModel):
    property_id: int
    property_name: str
    property_code: str
    average_score: Optional[float] = None
    band: Optional[str] = None
    submission_count: int


class CategoryAverage(BaseModel):
    name: str
    average: Optional[float] = None


class TrendPoint(BaseModel):
    month: str  # YYYY-MM
    average: Optional[float] = None
    submission_count: int


class PropertyScoreDetail(BaseModel):
    property_id: int
    property_name: str
    overall_score: Optional[float] = None
    band: Optional[str] = None
    submission_count: int
    categories: List[CategoryAverage] = []
    trend: List[TrendPoint] = []
