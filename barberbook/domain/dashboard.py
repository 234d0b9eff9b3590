"""
Aggregation of reservation history into the admin dashboard views.

Every function here is a pure function of (reservations, now, timezone);
the dashboard is recomputed from scratch on each load.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Sequence, Tuple

from pendulum import Date, DateTime

from .models import Reservation

REMOVED_SERVICE_NAME = "Removido"
MISSING_STATUS_NAME = "pendente"
TRAILING_DAYS = 7
TOP_HOURS = 5
MONTHS_IN_REPORT = 6


@dataclass(frozen=True)
class ServiceSummary:
    name: str
    count: int
    revenue: Decimal


@dataclass(frozen=True)
class DailyRevenue:
    day: Date
    revenue: Decimal
    completed_count: int

    @property
    def label(self) -> str:
        return self.day.format("DD/MM")


@dataclass(frozen=True)
class HourSummary:
    hour: int
    count: int
    revenue: Decimal

    @property
    def label(self) -> str:
        return f"{self.hour}:00"


@dataclass(frozen=True)
class StatusCount:
    name: str
    count: int


@dataclass(frozen=True)
class FinancialMetrics:
    total_revenue: Decimal = Decimal("0")
    month_revenue: Decimal = Decimal("0")
    week_revenue: Decimal = Decimal("0")
    completed_count: int = 0
    total_count: int = 0
    completion_rate: float = 0.0
    loyal_customers: int = 0


@dataclass(frozen=True)
class MonthlyRevenue:
    year: int
    month: int
    revenue: Decimal
    growth_percent: float = 0.0

    @property
    def label(self) -> str:
        return f"{self.month}/{self.year}"


@dataclass(frozen=True)
class DashboardReport:
    services: List[ServiceSummary] = field(default_factory=list)
    daily: List[DailyRevenue] = field(default_factory=list)
    hours: List[HourSummary] = field(default_factory=list)
    statuses: List[StatusCount] = field(default_factory=list)
    metrics: FinancialMetrics = field(default_factory=FinancialMetrics)
    monthly: List[MonthlyRevenue] = field(default_factory=list)


def summarize_services(reservations: Sequence[Reservation]) -> List[ServiceSummary]:
    """Count per service and sum revenue of completed reservations, highest revenue first."""
    counts: Dict[str, int] = defaultdict(int)
    revenue: Dict[str, Decimal] = defaultdict(Decimal)

    for reservation in reservations:
        name = reservation.service.name if reservation.service else REMOVED_SERVICE_NAME
        counts[name] += 1
        # Touch the revenue bucket so services without completions still report 0
        revenue[name] += reservation.price if reservation.is_completed else Decimal("0")

    summaries = [
        ServiceSummary(name=name, count=counts[name], revenue=revenue[name])
        for name in counts
    ]
    return sorted(summaries, key=lambda s: s.revenue, reverse=True)


def summarize_trailing_days(
    reservations: Sequence[Reservation],
    now: DateTime,
    timezone: str,
    days: int = TRAILING_DAYS
) -> List[DailyRevenue]:
    """One bucket per local calendar day of the window ending today, oldest first."""
    today = now.in_timezone(timezone).date()
    window = [today.subtract(days=offset) for offset in range(days - 1, -1, -1)]

    revenue: Dict[Date, Decimal] = {day: Decimal("0") for day in window}
    completed: Dict[Date, int] = {day: 0 for day in window}

    for reservation in reservations:
        if not reservation.is_completed:
            continue
        day = reservation.local_start(timezone).date()
        if day in revenue:
            revenue[day] += reservation.price
            completed[day] += 1

    return [
        DailyRevenue(day=day, revenue=revenue[day], completed_count=completed[day])
        for day in window
    ]


def summarize_hours(
    reservations: Sequence[Reservation],
    timezone: str,
    limit: int = TOP_HOURS
) -> List[HourSummary]:
    """Per start hour counts and completed revenue, top ``limit`` by revenue."""
    counts: Dict[int, int] = defaultdict(int)
    revenue: Dict[int, Decimal] = defaultdict(Decimal)

    for reservation in reservations:
        hour = reservation.local_start(timezone).hour
        counts[hour] += 1
        revenue[hour] += reservation.price if reservation.is_completed else Decimal("0")

    summaries = [
        HourSummary(hour=hour, count=counts[hour], revenue=revenue[hour])
        for hour in counts
    ]
    return sorted(summaries, key=lambda s: s.revenue, reverse=True)[:limit]


def count_statuses(reservations: Sequence[Reservation]) -> List[StatusCount]:
    """One bucket per status present, in first-seen order; missing status counts as pending."""
    counts: Dict[str, int] = {}

    for reservation in reservations:
        if reservation.status:
            name = reservation.status.value
        else:
            name = reservation.raw_status or MISSING_STATUS_NAME
        counts[name] = counts.get(name, 0) + 1

    return [
        StatusCount(name=name.capitalize(), count=count)
        for name, count in counts.items()
    ]


def compute_metrics(
    reservations: Sequence[Reservation],
    now: DateTime,
    timezone: str
) -> FinancialMetrics:
    completed = [r for r in reservations if r.is_completed]
    local_now = now.in_timezone(timezone)
    week_ago = now.subtract(days=TRAILING_DAYS)

    total_revenue = sum((r.price for r in completed), Decimal("0"))

    month_revenue = Decimal("0")
    week_revenue = Decimal("0")
    per_customer: Dict[str, int] = defaultdict(int)

    for reservation in completed:
        local_start = reservation.local_start(timezone)
        if local_start.year == local_now.year and local_start.month == local_now.month:
            month_revenue += reservation.price
        if reservation.start >= week_ago:
            week_revenue += reservation.price
        if reservation.customer_id:
            per_customer[reservation.customer_id] += 1

    total = len(reservations)
    return FinancialMetrics(
        total_revenue=total_revenue,
        month_revenue=month_revenue,
        week_revenue=week_revenue,
        completed_count=len(completed),
        total_count=total,
        completion_rate=(len(completed) / total * 100) if total else 0.0,
        loyal_customers=sum(1 for count in per_customer.values() if count > 1),
    )


def summarize_months(
    reservations: Sequence[Reservation],
    timezone: str,
    limit: int = MONTHS_IN_REPORT
) -> List[MonthlyRevenue]:
    """
    Completed revenue per month, most recent first, at most ``limit`` months.

    Growth compares each bucket with the one right before it in this list;
    the first bucket and buckets following a zero-revenue month get 0%.
    """
    revenue: Dict[Tuple[int, int], Decimal] = defaultdict(Decimal)

    for reservation in reservations:
        if not reservation.is_completed:
            continue
        local_start = reservation.local_start(timezone)
        revenue[(local_start.year, local_start.month)] += reservation.price

    keys = sorted(revenue, reverse=True)[:limit]

    report: List[MonthlyRevenue] = []
    previous: Decimal | None = None
    for year, month in keys:
        current = revenue[(year, month)]
        growth = 0.0
        if previous is not None and previous > 0:
            growth = float((current - previous) / previous * 100)
        report.append(MonthlyRevenue(year=year, month=month, revenue=current, growth_percent=growth))
        previous = current

    return report


def build_dashboard(
    reservations: Sequence[Reservation],
    now: DateTime,
    timezone: str
) -> DashboardReport:
    """Compute every dashboard view from the full reservation list."""
    reservations = list(reservations)
    return DashboardReport(
        services=summarize_services(reservations),
        daily=summarize_trailing_days(reservations, now, timezone),
        hours=summarize_hours(reservations, timezone),
        statuses=count_statuses(reservations),
        metrics=compute_metrics(reservations, now, timezone),
        monthly=summarize_months(reservations, timezone),
    )
