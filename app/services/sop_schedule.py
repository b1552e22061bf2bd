"""
SOP scheduling rules

Pure helpers shared by the SOP service and endpoints:
- current due date of a recurring assignment
- overdue check against the assignment's deadline time
- completion status derived from checked item counts
"""
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from app.core.config import settings
from app.core.exceptions import TemplateValidationError
from app.models.sop import SopFrequency, SopCompletionStatus


def parse_deadline_time(deadline_time: str) -> time:
    """Parse an "HH:MM" deadline into a time object"""
    hours, minutes = deadline_time.split(":")
    return time(int(hours), int(minutes))


def check_deadline_day(frequency: SopFrequency, deadline_day: Optional[int]) -> None:
    """
    Raise TemplateValidationError when deadline_day does not fit the frequency:
    weekly 0 (Monday) to 6 (Sunday), monthly 1 to 31. Daily ignores it.
    """
    if deadline_day is None:
        return
    frequency = SopFrequency(frequency)
    if frequency == SopFrequency.WEEKLY and not 0 <= deadline_day <= 6:
        raise TemplateValidationError("Weekly deadline_day must be between 0 (Monday) and 6 (Sunday)")
    if frequency == SopFrequency.MONTHLY and not 1 <= deadline_day <= 31:
        raise TemplateValidationError("Monthly deadline_day must be between 1 and 31")


def compute_current_due_date(
    frequency: SopFrequency,
    deadline_day: Optional[int],
    now: Optional[datetime] = None,
) -> date:
    """
    Compute the due date of the period that contains "now".

    - daily: today
    - weekly: Monday of the current week plus deadline_day (0=Mon..6=Sun)
    - monthly: day deadline_day of the current month, capped at 28 so the
      date exists in every month
    """
    today = (now or datetime.now()).date()
    frequency = SopFrequency(frequency)

    if frequency == SopFrequency.DAILY:
        return today

    if frequency == SopFrequency.WEEKLY:
        week_start = today - timedelta(days=today.weekday())
        return week_start + timedelta(days=deadline_day if deadline_day is not None else 0)

    day = deadline_day if deadline_day is not None else 1
    day = max(1, min(day, settings.MONTHLY_DEADLINE_DAY_CAP))
    return today.replace(day=day)


def is_overdue(due_date: date, deadline_time: str, now: Optional[datetime] = None) -> bool:
    """True once "now" is past the deadline time on the due date"""
    deadline = datetime.combine(due_date, parse_deadline_time(deadline_time))
    return (now or datetime.now()) > deadline


def derive_completion_status(
    current_status: SopCompletionStatus,
    completed_at: Optional[datetime],
    total_items: int,
    checked_items: int,
    now: Optional[datetime] = None,
) -> Tuple[SopCompletionStatus, Optional[datetime]]:
    """
    Re-evaluate a completion after an item was checked or unchecked.

    pending -> completed when every template item is checked,
    completed -> pending as soon as any item is unchecked.

    Returns:
        (status, completed_at)
    """
    current_status = SopCompletionStatus(current_status)

    if total_items > 0 and checked_items >= total_items:
        if current_status == SopCompletionStatus.COMPLETED and completed_at is not None:
            return SopCompletionStatus.COMPLETED, completed_at
        return SopCompletionStatus.COMPLETED, now or datetime.now()

    if current_status == SopCompletionStatus.COMPLETED:
        return SopCompletionStatus.PENDING, None

    return current_status, completed_at


def display_status(status: SopCompletionStatus, due_date: date, deadline_time: str, now: Optional[datetime] = None) -> str:
    """Dashboard bucket: completed, overdue or pending"""
    if SopCompletionStatus(status) == SopCompletionStatus.COMPLETED:
        return "completed"
    if is_overdue(due_date, deadline_time, now):
        return "overdue"
    return "pending"
