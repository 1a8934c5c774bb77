"""
Recurrence Expander.

Pure date arithmetic: turns a recurrence rule plus an anchor date into the
concrete calendar dates on which the task is due. No I/O happens here.

Every rule is expanded period by period (day, week, month or year), stepping
``interval`` periods from the period that contains the anchor. Periods before
the requested window are skipped arithmetically rather than walked.
"""

import calendar
from datetime import MAXYEAR, date, datetime, timedelta
from typing import Any, Iterator, List, Optional

from cadence.services.recurrence_validator import parse_recurrence_rule


def _as_date(value: Any) -> date:
    """Normalize a date or datetime to a date (time-of-day is not part of recurrence)."""
    if isinstance(value, datetime):
        return value.date()
    return value


def _add_months(year: int, month: int, months: int):
    """Return (year, month) shifted by a number of months."""
    total = year * 12 + (month - 1) + months
    return total // 12, total % 12 + 1


def _clamped_date(year: int, month: int, day: int) -> date:
    """Build a date, clamping the day to the last day of the month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def _nth_weekday_of_month(year: int, month: int, week: int, weekday: int) -> Optional[date]:
    """The k-th given weekday (1=Monday) of a month, or None if the month has no such day."""
    first = date(year, month, 1)
    offset = (weekday - first.isoweekday()) % 7
    day = 1 + offset + 7 * (week - 1)
    if day > calendar.monthrange(year, month)[1]:
        return None
    return date(year, month, day)


def _shift(value: date, days: int) -> Optional[date]:
    """value + days, or None once the result leaves the calendar range."""
    try:
        return value + timedelta(days=days)
    except OverflowError:
        return None


def _daily_candidates(rule, anchor: date, start: date, end: date) -> Iterator[date]:
    step = rule.interval
    elapsed = (start - anchor).days
    index = -(-elapsed // step) if elapsed > 0 else 0  # ceil division
    current = _shift(anchor, index * step)
    while current is not None and current <= end:
        yield current
        current = _shift(current, step)


def _weekly_candidates(rule, anchor: date, start: date, end: date) -> Iterator[date]:
    weekdays = rule.weekdays or (anchor.isoweekday(),)
    anchor_week = anchor - timedelta(days=anchor.weekday())
    weeks_elapsed = max(0, (start - anchor_week).days // 7)
    week = _shift(anchor_week, 7 * (weeks_elapsed // rule.interval) * rule.interval)
    while week is not None and week <= end:
        for weekday in weekdays:
            candidate = _shift(week, weekday - 1)
            if candidate is None:
                return
            if candidate >= anchor:
                yield candidate
        week = _shift(week, 7 * rule.interval)


def _monthly_day(rule, year: int, month: int) -> Optional[date]:
    if rule.month_day is not None:
        return _clamped_date(year, month, rule.month_day)
    if rule.nth_weekday is not None:
        return _nth_weekday_of_month(year, month, rule.nth_weekday.week, rule.nth_weekday.weekday)
    return date(year, month, 1)


def _monthly_candidates(rule, anchor: date, start: date, end: date) -> Iterator[date]:
    months_elapsed = max(0, (start.year - anchor.year) * 12 + start.month - anchor.month)
    offset = (months_elapsed // rule.interval) * rule.interval
    while True:
        year, month = _add_months(anchor.year, anchor.month, offset)
        if year > MAXYEAR or date(year, month, 1) > end:
            return
        candidate = _monthly_day(rule, year, month)
        if candidate is not None and candidate >= anchor:
            yield candidate
        offset += rule.interval


def _yearly_candidates(rule, anchor: date, start: date, end: date) -> Iterator[date]:
    years_elapsed = max(0, start.year - anchor.year)
    offset = (years_elapsed // rule.interval) * rule.interval
    while True:
        year = anchor.year + offset
        if year > MAXYEAR or date(year, 1, 1) > end:
            return
        # Feb 29 anchors fall back to Feb 28 in non-leap years
        candidate = _clamped_date(year, anchor.month, anchor.day)
        if candidate >= anchor:
            yield candidate
        offset += rule.interval


# Upper bound for next_occurrence searches
_SEARCH_LIMIT = date(9000, 12, 31)

_CANDIDATES = {
    "daily": _daily_candidates,
    "weekly": _weekly_candidates,
    "monthly": _monthly_candidates,
    "yearly": _yearly_candidates,
}


def dates_in_window(
    rule: Any,
    anchor_date: Any,
    window_start: Any,
    window_end: Any,
    occurrences_before_window: int = 0,
) -> List[date]:
    """
    Compute the dates inside a window on which a rule is due.

    Args:
        rule: Recurrence rule model or its stored dict form
        anchor_date: The task's original due date; the series starts here
        window_start: First date of the window (inclusive)
        window_end: Last date of the window (inclusive)
        occurrences_before_window: Occurrences the series already produced
            before the window; counts against ``max_occurrences``

    Returns:
        Strictly increasing list of due dates within the window

    Raises:
        InvalidRuleError: If the rule is malformed
    """
    rule = parse_recurrence_rule(rule)
    if occurrences_before_window < 0:
        raise ValueError("occurrences_before_window cannot be negative")

    anchor = _as_date(anchor_date)
    start = max(anchor, _as_date(window_start))
    end = _as_date(window_end)
    if rule.end_date is not None:
        end = min(end, rule.end_date)
    if start > end:
        return []

    remaining = None
    if rule.max_occurrences is not None:
        remaining = rule.max_occurrences - occurrences_before_window
        if remaining <= 0:
            return []

    excluded = set(rule.exclude_dates)
    dates = []
    for candidate in _CANDIDATES[rule.type](rule, anchor, start, end):
        if candidate > end:
            break
        if candidate < start or candidate in excluded:
            continue
        dates.append(candidate)
        if remaining is not None and len(dates) >= remaining:
            break
    return dates


def count_occurrences_before(rule: Any, anchor_date: Any, before: Any) -> int:
    """Number of occurrences the series produced strictly before a date."""
    anchor = _as_date(anchor_date)
    last = _as_date(before) - timedelta(days=1)
    if last < anchor:
        return 0
    return len(dates_in_window(rule, anchor, anchor, last))


def next_occurrence(rule: Any, anchor_date: Any, on_or_after: Any) -> Optional[date]:
    """
    First due date on or after a given date.

    Returns None once the series has ended (end date passed or occurrences
    exhausted).
    """
    rule = parse_recurrence_rule(rule)
    start = max(_as_date(anchor_date), _as_date(on_or_after))
    if rule.end_date is not None and rule.end_date < start:
        return None

    before = 0
    if rule.max_occurrences is not None:
        before = count_occurrences_before(rule, anchor_date, start)
        if before >= rule.max_occurrences:
            return None

    # One year of periods holds an occurrence for every rule except
    # nth-weekday ones, which can skip months; widen the search for those
    span = 366 * rule.interval
    for _ in range(4):
        end = start + timedelta(days=max(0, min(span, (_SEARCH_LIMIT - start).days)))
        dates = dates_in_window(rule, anchor_date, start, end, before)
        if dates:
            return dates[0]
        if end >= _SEARCH_LIMIT or (rule.end_date is not None and end >= rule.end_date):
            return None
        span *= 4
    return None
