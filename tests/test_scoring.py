"""
Weighted scoring engine tests

Pure functions only; no database. Template rows are stood in for by
SimpleNamespace objects exposing the same attributes as the ORM models.
"""
from types import SimpleNamespace

import pytest

from app.services.scoring_service import (
    NEUTRAL_NORMALIZED,
    aggregate_scores,
    mean,
    normalize,
    score_band,
    weighted_mean,
)


def question(qid, scale_min=1, scale_max=10, sort_order=0):
    return SimpleNamespace(id=qid, text=f"Question {qid}", scale_min=scale_min, scale_max=scale_max, sort_order=sort_order)


def subcategory(sid, questions, name="", sort_order=0):
    return SimpleNamespace(id=sid, name=name, questions=questions, sort_order=sort_order)


def category(cid, subcategories, weight=1.0, sort_order=0, name=None):
    return SimpleNamespace(id=cid, name=name or f"Category {cid}", weight=weight, subcategories=subcategories, sort_order=sort_order)


def answer(question_id, score, issue_description=None):
    return SimpleNamespace(question_id=question_id, score=score, note=None, issue_description=issue_description)


# ============================================================================
# normalize
# ============================================================================

def test_normalize_bounds():
    assert normalize(1, 1, 10) == 0
    assert normalize(10, 1, 10) == 1
    assert normalize(0, 0, 100) == 0.0
    assert normalize(100, 0, 100) == 1.0


def test_normalize_is_monotonic():
    values = [normalize(score, 1, 10) for score in range(1, 11)]
    assert values == sorted(values)
    assert len(set(values)) == len(values)


def test_normalize_degenerate_scale_returns_neutral_value():
    assert normalize(5, 5, 5) == NEUTRAL_NORMALIZED == 0.5


# ============================================================================
# helpers
# ============================================================================

def test_mean_skips_missing_values():
    assert mean([None, 4.0, None, 8.0]) == 6.0
    assert mean([]) is None
    assert mean([None]) is None


def test_weighted_mean_without_usable_weight_has_no_data():
    assert weighted_mean([(5.0, 0.0), (7.0, 0.0)]) is None
    assert weighted_mean([(None, 2.0)]) is None


@pytest.mark.parametrize("value,expected", [
    (8.0, "good"),
    (7.0, "fair"),
    (5.0, "fair"),
    (4.9, "poor"),
    (None, None),
])
def test_score_band(value, expected):
    assert score_band(value, 10) == expected


# ============================================================================
# aggregate_scores
# ============================================================================

def test_weighted_overall_of_two_categories():
    # Weight 2 averaging 8.0 and weight 1 averaging 4.0 -> (16 + 4) / 3
    categories = [
        category(1, [subcategory(10, [question(100, 0, 10)])], weight=2.0, sort_order=1),
        category(2, [subcategory(20, [question(200, 0, 10)])], weight=1.0, sort_order=2),
    ]
    score = aggregate_scores(categories, [answer(100, 8), answer(200, 4)], scale=10)

    assert score.has_data is True
    assert score.categories[0].average == pytest.approx(8.0)
    assert score.categories[1].average == pytest.approx(4.0)
    assert score.overall == pytest.approx(6.67, abs=0.005)
    assert score.band == "fair"


@pytest.mark.parametrize("weight", [0.5, 1.0, 3.0])
def test_single_question_at_max_is_fully_normalized(weight):
    categories = [category(1, [subcategory(10, [question(100, 1, 5)])], weight=weight)]

    assert aggregate_scores(categories, [answer(100, 5)], scale=1).overall == pytest.approx(1.0)
    assert aggregate_scores(categories, [answer(100, 5)], scale=10).overall == pytest.approx(10.0)


def test_unanswered_question_does_not_change_subcategory_average():
    answered_only = [category(1, [subcategory(10, [question(100), question(101)])])]
    with_unanswered = [category(1, [subcategory(10, [question(100), question(101), question(102)])])]
    responses = [answer(100, 10), answer(101, 4)]

    before = aggregate_scores(answered_only, responses)
    after = aggregate_scores(with_unanswered, responses)

    assert after.categories[0].subcategories[0].average == pytest.approx(before.categories[0].subcategories[0].average)
    assert after.categories[0].subcategories[0].answered_count == 2
    assert after.categories[0].subcategories[0].question_count == 3


def test_category_without_answers_is_excluded_not_zero():
    categories = [
        category(1, [subcategory(10, [question(100, 0, 10)])], weight=1.0),
        category(2, [subcategory(20, [question(200, 0, 10)])], weight=5.0),
    ]
    score = aggregate_scores(categories, [answer(100, 9)], scale=10)

    assert score.categories[1].average is None
    assert score.overall == pytest.approx(9.0)


def test_subcategories_are_equally_weighted_within_category():
    # Lobby has two answers averaging 10, Rooms one answer at 0 -> category 5.0
    categories = [category(1, [
        subcategory(10, [question(100, 0, 10), question(101, 0, 10)], name="Lobby", sort_order=1),
        subcategory(11, [question(110, 0, 10)], name="Rooms", sort_order=2),
    ])]
    score = aggregate_scores(categories, [answer(100, 10), answer(101, 10), answer(110, 0)])

    assert score.categories[0].average == pytest.approx(5.0)


def test_no_responses_means_no_data():
    categories = [category(1, [subcategory(10, [question(100)])])]
    score = aggregate_scores(categories, [])

    assert score.has_data is False
    assert score.overall == 0.0
    assert score.band is None
    assert score.categories[0].average is None
    assert score.categories[0].subcategories[0].average is None


def test_zero_total_weight_means_no_data():
    categories = [category(1, [subcategory(10, [question(100)])], weight=0.0)]
    score = aggregate_scores(categories, [answer(100, 10)])

    assert score.has_data is False
    assert score.categories[0].average == pytest.approx(10.0)


def test_ungrouped_subcategory_is_scored_like_any_other():
    grouped = [category(1, [subcategory(10, [question(100)], name="Arrival")])]
    ungrouped = [category(1, [subcategory(10, [question(100)], name="")])]
    responses = [answer(100, 7)]

    assert aggregate_scores(ungrouped, responses).overall == aggregate_scores(grouped, responses).overall
    assert aggregate_scores(ungrouped, responses).categories[0].subcategories[0].is_ungrouped


def test_result_does_not_depend_on_response_order():
    categories = [
        category(1, [subcategory(10, [question(100), question(101)])], weight=2.0, sort_order=1),
        category(2, [subcategory(20, [question(200)])], weight=1.0, sort_order=2),
    ]
    responses = [answer(100, 3), answer(101, 9), answer(200, 6)]

    forward = aggregate_scores(categories, responses)
    backward = aggregate_scores(categories, list(reversed(responses)))

    assert forward.overall == backward.overall
    assert [c.average for c in forward.categories] == [c.average for c in backward.categories]


def test_dashboard_scale_is_percentage():
    categories = [category(1, [subcategory(10, [question(100, 1, 5)])])]
    score = aggregate_scores(categories, [answer(100, 4)], scale=100)

    assert score.overall == pytest.approx(75.0)
    assert score.band == "good"
