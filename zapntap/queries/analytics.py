"""
Ledger Analytics

DESIGN DECISION: Every figure is a pure reducer over a session snapshot.
Nothing is cached, so a figure can never be staler than the snapshot it
was computed from, and computing it twice gives the same answer.

"This month" means the calendar month of `now` (same year and month),
not a rolling 30-day window.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from zapntap.models.session import ChargingSession, LedgerSummary, PeriodUsage, Timeframe


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now()


def in_same_month(timestamp: Optional[datetime], reference: datetime) -> bool:
    if timestamp is None:
        return False
    return timestamp.year == reference.year and timestamp.month == reference.month


def sessions_in_month(
    sessions: Iterable[ChargingSession],
    reference: Optional[datetime] = None,
) -> list[ChargingSession]:
    """Sessions whose timestamp falls in the calendar month of reference."""
    reference = _now(reference)
    return [s for s in sessions if in_same_month(s.timestamp, reference)]


def total_unpaid_amount(sessions: Iterable[ChargingSession]) -> float:
    """Sum of cost over unpaid sessions."""
    return sum((s.cost for s in sessions if not s.is_paid), 0.0)


def total_kwh_this_month(
    sessions: Iterable[ChargingSession],
    now: Optional[datetime] = None,
) -> float:
    return sum((s.kwh_used for s in sessions_in_month(sessions, now)), 0.0)


def total_cost_this_month(
    sessions: Iterable[ChargingSession],
    now: Optional[datetime] = None,
) -> float:
    return sum((s.cost for s in sessions_in_month(sessions, now)), 0.0)


def summarize(
    sessions: Iterable[ChargingSession],
    now: Optional[datetime] = None,
) -> LedgerSummary:
    """Headline figures for the analytics screen."""
    sessions = list(sessions)
    now = _now(now)
    return LedgerSummary(
        session_count=len(sessions),
        unpaid_count=sum(1 for s in sessions if not s.is_paid),
        total_unpaid_amount=total_unpaid_amount(sessions),
        total_kwh_this_month=total_kwh_this_month(sessions, now),
        total_cost_this_month=total_cost_this_month(sessions, now),
    )


def _shift_month(day: date, months_back: int) -> date:
    """First day of the month `months_back` months before day's month."""
    index = day.year * 12 + (day.month - 1) - months_back
    return date(index // 12, index % 12 + 1, 1)


def usage_series(
    sessions: Iterable[ChargingSession],
    timeframe: Timeframe,
    now: Optional[datetime] = None,
) -> list[PeriodUsage]:
    """
    Chart buckets, oldest first.

    WEEK:  7 daily buckets ending today
    MONTH: 30 daily buckets ending today
    YEAR:  12 calendar-month buckets ending this month
    """
    today = _now(now).date()

    if timeframe == Timeframe.YEAR:
        starts = [_shift_month(today, offset) for offset in range(11, -1, -1)]
        key = lambda ts: date(ts.year, ts.month, 1)
    else:
        days = 7 if timeframe == Timeframe.WEEK else 30
        starts = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
        key = lambda ts: ts.date()

    buckets = {start: PeriodUsage(period_start=start) for start in starts}
    for session in sessions:
        if session.timestamp is None:
            continue
        bucket = buckets.get(key(session.timestamp))
        if bucket is None:
            continue
        bucket.kwh += session.kwh_used
        bucket.cost += session.cost
        bucket.session_count += 1

    return [buckets[start] for start in starts]
