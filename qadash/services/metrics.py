"""
Metrics Aggregator — dashboard and report KPIs.

Pure functions turn raw test-case / execution rows into summaries; the
``MetricsAggregator`` class reads those rows through the Persistence
Gateway and hands them to the pure functions.

Usage:
    from qadash.services.metrics import MetricsAggregator
    metrics = await MetricsAggregator(gateway).dashboard_metrics()
    report = await MetricsAggregator(gateway).test_metrics("2024-01-01", "2024-01-31")

Rules:
    pass_rate = passed / total * 100, 0 when total is 0
    avg_execution_time rounded to 2 decimals, 0 when there are no executions
    grouping never drops a row: missing or unknown values land in "unknown"
    trend = 7 calendar days ending today (UTC), oldest first

Aggregation never fails on empty input. Gateway failures propagate
unchanged; the caller decides on fallbacks.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta

from qadash.models.testing import PENDING_STATUSES, TEST_CASE_STATUSES, TEST_CASE_TYPES
from qadash.services.helpers.dates import day_bounds, day_key, parse_range, utc_today

UNKNOWN_BUCKET = "unknown"
TREND_DAYS = 7
RECENT_ACTIVITY_LIMIT = 10


@dataclass
class DashboardMetrics:
    total_test_cases: int = 0
    active_integrations: int = 0
    total_executions: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0
    pending_tests: int = 0
    pass_rate: float = 0.0
    avg_execution_time: float = 0.0
    test_cases_by_type: dict[str, int] = field(default_factory=dict)
    test_cases_by_status: dict[str, int] = field(default_factory=dict)
    execution_trend: list[dict] = field(default_factory=list)
    recent_activity: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TestMetrics:
    __test__ = False  # not a pytest class

    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0
    pass_rate: float = 0.0
    avg_execution_time: float = 0.0
    executions: list[dict] = field(default_factory=list)

    def to_dict(self, include_executions: bool = True) -> dict:
        d = asdict(self)
        if not include_executions:
            d.pop("executions")
        return d


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════

def _safe_pct(numerator: int, denominator: int) -> float:
    """Zero-safe percentage, unrounded."""
    return (numerator / denominator) * 100 if denominator else 0.0


def _avg_duration(executions: list[dict]) -> float:
    if not executions:
        return 0.0
    total = sum(float(e.get("execution_time") or 0) for e in executions)
    return round(total / len(executions), 2)


def group_counts(rows: list[dict], key: str, allowed: set[str]) -> dict[str, int]:
    """Count rows by ``key``; values outside ``allowed`` go to ``"unknown"``."""
    counts: Counter = Counter()
    for row in rows:
        value = row.get(key)
        counts[value if value in allowed else UNKNOWN_BUCKET] += 1
    return dict(counts)


def trend_window(today: date | None = None, days: int = TREND_DAYS) -> tuple[date, date]:
    """First and last calendar day of the trailing trend window."""
    today = today or utc_today()
    return today - timedelta(days=days - 1), today


def execution_trend(executions: list[dict], today: date | None = None,
                    days: int = TREND_DAYS) -> list[dict]:
    """Per-day execution counts for the trailing window, oldest day first.

    Days are matched on the calendar date of ``executed_at``, not a
    rolling 24h window.
    """
    start, _ = trend_window(today, days)
    per_day = Counter(day_key(e.get("executed_at")) for e in executions)
    trend = []
    for offset in range(days):
        day = (start + timedelta(days=offset)).isoformat()
        trend.append({"date": day, "executions": per_day.get(day, 0)})
    return trend


def _in_window(executions: list[dict], start: date, end: date) -> list[dict]:
    lo, hi = start.isoformat(), end.isoformat()
    return [
        e for e in executions
        if (key := day_key(e.get("executed_at"))) is not None and lo <= key <= hi
    ]


def _outcome_counts(executions: list[dict]) -> tuple[int, int, int]:
    outcomes = Counter(e.get("status") for e in executions)
    return outcomes["passed"], outcomes["failed"], outcomes["skipped"]


# ═════════════════════════════════════════════════════════════════════════════
# Core Metric Functions
# ═════════════════════════════════════════════════════════════════════════════

def compute_dashboard_metrics(
    test_cases: list[dict],
    executions: list[dict],
    integrations: list[dict],
    today: date | None = None,
) -> DashboardMetrics:
    """Dashboard summary from raw rows.

    Executions outside the 7-day lookback window are ignored, so callers
    may pass a wider set. Integrations count only when ``status`` is
    ``active``.
    """
    start, end = trend_window(today)
    window = _in_window(executions, start, end)
    passed, failed, skipped = _outcome_counts(window)
    recent = sorted(window, key=lambda e: e.get("executed_at") or "", reverse=True)

    return DashboardMetrics(
        total_test_cases=len(test_cases),
        active_integrations=sum(1 for i in integrations if i.get("status") == "active"),
        total_executions=len(window),
        passed_tests=passed,
        failed_tests=failed,
        skipped_tests=skipped,
        pending_tests=sum(1 for tc in test_cases if tc.get("status") in PENDING_STATUSES),
        pass_rate=_safe_pct(passed, len(window)),
        avg_execution_time=_avg_duration(window),
        test_cases_by_type=group_counts(test_cases, "type", TEST_CASE_TYPES),
        test_cases_by_status=group_counts(test_cases, "status", TEST_CASE_STATUSES),
        execution_trend=execution_trend(window, end),
        recent_activity=recent[:RECENT_ACTIVITY_LIMIT],
    )


def compute_test_metrics(executions: list[dict], date_from, date_to) -> TestMetrics:
    """Pass/fail summary for executions whose day falls in [date_from, date_to].

    Raises:
        ValidationError: a bound is not a valid date.
        InvalidRangeError: ``date_from`` is after ``date_to``.
    """
    start, end = parse_range(date_from, date_to)
    window = _in_window(executions, start, end)
    passed, failed, skipped = _outcome_counts(window)
    return TestMetrics(
        total_tests=len(window),
        passed_tests=passed,
        failed_tests=failed,
        skipped_tests=skipped,
        pass_rate=_safe_pct(passed, len(window)),
        avg_execution_time=_avg_duration(window),
        executions=window,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Gateway-bound aggregator
# ═════════════════════════════════════════════════════════════════════════════

class MetricsAggregator:
    """Reads rows through the gateway and feeds the pure metric functions.

    Args:
        gateway: PersistenceGateway instance.
    """

    def __init__(self, gateway) -> None:
        self.gateway = gateway

    async def dashboard_metrics(self, today: date | None = None) -> DashboardMetrics:
        start, end = trend_window(today)
        lower, upper = day_bounds(start, end)
        test_cases = await self.gateway.read("test_cases")
        executions = await self.gateway.read(
            "test_executions",
            {"executed_at__gte": lower, "executed_at__lt": upper},
            order_by="-executed_at",
        )
        integrations = await self.gateway.read("integrations", {"status": "active"})
        return compute_dashboard_metrics(test_cases, executions, integrations, today=end)

    async def test_metrics(self, date_from, date_to) -> TestMetrics:
        start, end = parse_range(date_from, date_to)
        lower, upper = day_bounds(start, end)
        executions = await self.gateway.read(
            "test_executions",
            {"executed_at__gte": lower, "executed_at__lt": upper},
            order_by="executed_at",
        )
        return compute_test_metrics(executions, start, end)
