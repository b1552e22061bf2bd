"""
Weighted Survey Scoring Engine

Rolls question scores up through three levels:

    question -> subcategory -> category -> overall

- Each answered question is normalized from its own [scale_min, scale_max]
  range to [0, 1] and multiplied by the display scale (10 or 100).
- A subcategory average is the plain mean of its answered questions.
  Unanswered questions are skipped; a subcategory with none answered has
  no data (None) and is left out of its category.
- A category average is the plain mean of its subcategory averages.
- The overall score is the weight-averaged mean of the categories that have
  data. With no data at all the overall score is 0.

The functions here are pure: they read ORM rows (or any objects exposing
the same attributes) and never mutate them, so the result only depends on
the set of responses, not their order.
"""
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

# Returned when scale_max == scale_min
NEUTRAL_NORMALIZED = 0.5

DISPLAY_SCALE_SUBMISSION = 10
DISPLAY_SCALE_DASHBOARD = 100


def normalize(score: float, scale_min: float, scale_max: float) -> float:
    """
    Map a raw score onto [0, 1].

    A degenerate scale (scale_max == scale_min) yields the neutral midpoint
    instead of raising.
    """
    if scale_max == scale_min:
        return NEUTRAL_NORMALIZED
    return (score - scale_min) / (scale_max - scale_min)


def mean(values: Iterable[Optional[float]]) -> Optional[float]:
    """Arithmetic mean of the non-None values, or None if there are none"""
    present = [v for v in values if v is not None]
    if not present:
        return None
    return math.fsum(present) / len(present)


def weighted_mean(pairs: Iterable[tuple]) -> Optional[float]:
    """
    Weighted mean of (value, weight) pairs, skipping None values.
    Returns None when no pair carries data or the weights sum to zero.
    """
    present = [(v, w) for v, w in pairs if v is not None]
    if not present:
        return None
    total_weight = math.fsum(w for _, w in present)
    if total_weight <= 0:
        return None
    return math.fsum(v * w for v, w in present) / total_weight


def score_band(value: Optional[float], scale: float = DISPLAY_SCALE_SUBMISSION) -> Optional[str]:
    """Traffic-light band used by the UI: good above 70%, fair from 50%"""
    if value is None:
        return None
    ratio = value / scale
    if ratio > 0.7:
        return "good"
    if ratio >= 0.5:
        return "fair"
    return "poor"


@dataclass
class QuestionScore:
    question_id: int
    text: str
    scale_min: int
    scale_max: int
    score: Optional[int] = None
    normalized: Optional[float] = None
    note: Optional[str] = None
    issue_description: Optional[str] = None

    @property
    def answered(self) -> bool:
        return self.score is not None


@dataclass
class SubcategoryScore:
    subcategory_id: int
    name: str
    average: Optional[float]
    answered_count: int
    question_count: int
    questions: List[QuestionScore] = field(default_factory=list)

    @property
    def is_ungrouped(self) -> bool:
        # Presentation hint only; scoring treats it like any other subcategory
        return self.name == ""


@dataclass
class CategoryScore:
    category_id: int
    name: str
    weight: float
    average: Optional[float]
    answered_count: int
    subcategories: List[SubcategoryScore] = field(default_factory=list)


@dataclass
class SurveyScore:
    overall: float
    has_data: bool
    scale: int
    answered_count: int
    categories: List[CategoryScore] = field(default_factory=list)

    @property
    def band(self) -> Optional[str]:
        if not self.has_data:
            return None
        return score_band(self.overall, self.scale)


def _sorted(rows):
    return sorted(rows, key=lambda r: (r.sort_order, r.id))


def score_subcategory(subcategory, responses_by_question: Dict[int, object], scale: int) -> SubcategoryScore:
    questions = []
    for question in _sorted(subcategory.questions):
        response = responses_by_question.get(question.id)
        entry = QuestionScore(
            question_id=question.id,
            text=question.text,
            scale_min=question.scale_min,
            scale_max=question.scale_max,
        )
        if response is not None and response.score is not None:
            entry.score = response.score
            entry.normalized = normalize(response.score, question.scale_min, question.scale_max) * scale
            entry.note = getattr(response, "note", None)
            entry.issue_description = getattr(response, "issue_description", None)
        questions.append(entry)

    answered = [q.normalized for q in questions if q.answered]
    return SubcategoryScore(
        subcategory_id=subcategory.id,
        name=subcategory.name or "",
        average=mean(answered),
        answered_count=len(answered),
        question_count=len(questions),
        questions=questions,
    )


def score_category(category, responses_by_question: Dict[int, object], scale: int) -> CategoryScore:
    subcategories = [
        score_subcategory(sub, responses_by_question, scale)
        for sub in _sorted(category.subcategories)
    ]
    weight = float(category.weight) if category.weight is not None else 1.0
    return CategoryScore(
        category_id=category.id,
        name=category.name,
        weight=weight,
        # Subcategories are equally weighted; weight lives on the category only
        average=mean(s.average for s in subcategories),
        answered_count=sum(s.answered_count for s in subcategories),
        subcategories=subcategories,
    )


def aggregate_scores(categories, responses, scale: int = DISPLAY_SCALE_SUBMISSION) -> SurveyScore:
    """
    Build the full score tree for one submission.

    Args:
        categories: template categories with .subcategories and .questions loaded
        responses: objects exposing question_id and score (note and
            issue_description are copied through when present)
        scale: display multiplier applied to normalized values (10 or 100)

    Returns:
        SurveyScore with per-category and per-subcategory averages
    """
    responses_by_question = {r.question_id: r for r in responses}
    category_scores = [
        score_category(category, responses_by_question, scale)
        for category in _sorted(categories)
    ]

    overall = weighted_mean((c.average, c.weight) for c in category_scores)
    return SurveyScore(
        overall=overall if overall is not None else 0.0,
        has_data=overall is not None,
        scale=scale,
        answered_count=sum(c.answered_count for c in category_scores),
        categories=category_scores,
    )
