"""
SOP scheduling and completion state tests (pure, no database)
"""
from datetime import date, datetime

import pytest

from app.core.exceptions import TemplateValidationError
from app.models.sop import SopFrequency, SopCompletionStatus
from app.services.sop_schedule import (
    check_deadline_day,
    compute_current_due_date,
    derive_completion_status,
    display_status,
    is_overdue,
)

# Wednesday
NOW = datetime(2025, 1, 15, 10, 30)


# ============================================================================
# compute_current_due_date
# ============================================================================

def test_daily_is_today():
    assert compute_current_due_date(SopFrequency.DAILY, None, NOW) == date(2025, 1, 15)


@pytest.mark.parametrize("deadline_day,expected", [
    (0, date(2025, 1, 13)),
    (2, date(2025, 1, 15)),
    (6, date(2025, 1, 19)),
    (None, date(2025, 1, 13)),
])
def test_weekly_counts_from_monday(deadline_day, expected):
    assert compute_current_due_date(SopFrequency.WEEKLY, deadline_day, NOW) == expected


def test_weekly_on_sunday_stays_in_same_week():
    sunday = datetime(2025, 1, 19, 8, 0)
    assert compute_current_due_date(SopFrequency.WEEKLY, 0, sunday) == date(2025, 1, 13)


@pytest.mark.parametrize("deadline_day", [28, 29, 30, 31])
def test_monthly_never_goes_past_the_28th(deadline_day):
    for month in range(1, 13):
        due = compute_current_due_date(SopFrequency.MONTHLY, deadline_day, datetime(2025, month, 10))
        assert due.day == 28
        assert due.month == month


def test_monthly_defaults_to_first_of_month():
    assert compute_current_due_date(SopFrequency.MONTHLY, None, NOW) == date(2025, 1, 1)
    assert compute_current_due_date(SopFrequency.MONTHLY, 15, NOW) == date(2025, 1, 15)


def test_frequency_accepts_plain_strings():
    assert compute_current_due_date("daily", None, NOW) == date(2025, 1, 15)


# ============================================================================
# check_deadline_day
# ============================================================================

@pytest.mark.parametrize("frequency,day", [
    (SopFrequency.WEEKLY, 7),
    (SopFrequency.WEEKLY, -1),
    (SopFrequency.MONTHLY, 0),
    (SopFrequency.MONTHLY, 32),
])
def test_out_of_range_deadline_day_is_rejected(frequency, day):
    with pytest.raises(TemplateValidationError):
        check_deadline_day(frequency, day)


def test_daily_ignores_deadline_day():
    check_deadline_day(SopFrequency.DAILY, 99)
    check_deadline_day(SopFrequency.MONTHLY, 31)


# ============================================================================
# is_overdue
# ============================================================================

def test_overdue_only_after_deadline_time():
    due = date(2025, 1, 15)
    assert is_overdue(due, "10:00", NOW) is True
    assert is_overdue(due, "17:00", NOW) is False
    assert is_overdue(due, "10:30", NOW) is False


def test_past_due_date_is_overdue_and_future_is_not():
    assert is_overdue(date(2025, 1, 14), "23:59", NOW) is True
    assert is_overdue(date(2025, 1, 16), "00:00", NOW) is False


# ============================================================================
# derive_completion_status
# ============================================================================

def test_last_item_checked_completes():
    status, completed_at = derive_completion_status(SopCompletionStatus.PENDING, None, 3, 3, NOW)
    assert status == SopCompletionStatus.COMPLETED
    assert completed_at == NOW


def test_partial_progress_stays_pending():
    status, completed_at = derive_completion_status(SopCompletionStatus.PENDING, None, 3, 2, NOW)
    assert status == SopCompletionStatus.PENDING
    assert completed_at is None


def test_unchecking_reverts_to_pending():
    status, completed_at = derive_completion_status(SopCompletionStatus.COMPLETED, NOW, 3, 2, NOW)
    assert status == SopCompletionStatus.PENDING
    assert completed_at is None


def test_recheck_while_completed_keeps_original_timestamp():
    earlier = datetime(2025, 1, 15, 9, 0)
    status, completed_at = derive_completion_status(SopCompletionStatus.COMPLETED, earlier, 3, 3, NOW)
    assert status == SopCompletionStatus.COMPLETED
    assert completed_at == earlier


def test_template_without_items_never_completes():
    status, _ = derive_completion_status(SopCompletionStatus.PENDING, None, 0, 0, NOW)
    assert status == SopCompletionStatus.PENDING


# ============================================================================
# display_status
# ============================================================================

def test_display_status_buckets():
    due = date(2025, 1, 15)
    assert display_status(SopCompletionStatus.COMPLETED, due, "09:00", NOW) == "completed"
    assert display_status(SopCompletionStatus.PENDING, due, "09:00", NOW) == "overdue"
    assert display_status(SopCompletionStatus.PENDING, due, "18:00", NOW) == "pending"
