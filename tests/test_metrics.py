"""Tests for qadash.services.metrics — dashboard and report KPIs.

Coverage:
  1. pass rate: zero-guard, bounds, rounding
  2. grouping by type/status keeps every row (unknown bucket)
  3. 7-day execution trend: calendar-day buckets, oldest first
  4. test metrics window is inclusive; empty input gives zeros
  5. date validation: malformed and inverted windows
  6. MetricsAggregator reads through the gateway
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from qadash.core.exceptions import InvalidRangeError, ValidationError
from qadash.services.metrics import (
    MetricsAggregator,
    compute_dashboard_metrics,
    compute_test_metrics,
    execution_trend,
    group_counts,
)
from qadash.models.testing import TEST_CASE_TYPES

TODAY = date(2024, 3, 10)


def _at(day, hour=12):
    return datetime.combine(day, time(hour, 0), tzinfo=timezone.utc).isoformat()


def _execution(day, status="passed", execution_time=1.0, hour=12):
    return {"status": status, "execution_time": execution_time, "executed_at": _at(day, hour)}


# ── Pass rate ────────────────────────────────────────────────────────────


class TestPassRate:

    def test_empty_executions_give_zero_pass_rate(self):
        metrics = compute_dashboard_metrics([], [], [], today=TODAY)
        assert metrics.pass_rate == 0
        assert metrics.total_executions == 0
        assert metrics.avg_execution_time == 0

    def test_pass_rate_is_percentage_of_passed(self):
        day = TODAY - timedelta(days=1)
        executions = [
            _execution(day, "passed"),
            _execution(day, "failed"),
            _execution(day, "skipped"),
        ]
        metrics = compute_dashboard_metrics([], executions, [], today=TODAY)
        assert metrics.pass_rate == pytest.approx(100 / 3)
        assert metrics.pass_rate != round(metrics.pass_rate, 2)
        assert 0 <= metrics.pass_rate <= 100
        assert (metrics.passed_tests, metrics.failed_tests, metrics.skipped_tests) == (1, 1, 1)

    def test_all_passed_is_one_hundred(self):
        executions = [_execution(TODAY) for _ in range(4)]
        assert compute_dashboard_metrics([], executions, [], today=TODAY).pass_rate == 100.0


# ── Grouping ─────────────────────────────────────────────────────────────


class TestGrouping:

    def test_every_test_case_counted_once(self):
        test_cases = [
            {"type": "smoke", "status": "todo"},
            {"type": "smoke", "status": "done"},
            {"type": "e2e", "status": "blocked"},
            {"type": "exploratory", "status": "archived"},
            {"type": None},
        ]
        metrics = compute_dashboard_metrics(test_cases, [], [], today=TODAY)
        assert sum(metrics.test_cases_by_type.values()) == len(test_cases)
        assert sum(metrics.test_cases_by_status.values()) == len(test_cases)
        assert metrics.test_cases_by_type == {"smoke": 2, "e2e": 1, "unknown": 2}
        assert metrics.test_cases_by_status["unknown"] == 2

    def test_group_counts_without_rows_is_empty(self):
        assert group_counts([], "type", TEST_CASE_TYPES) == {}

    def test_pending_counts_open_workflow_states(self):
        test_cases = [{"status": s} for s in ("todo", "in_progress", "testing", "done", "failed")]
        assert compute_dashboard_metrics(test_cases, [], [], today=TODAY).pending_tests == 3

    def test_only_active_integrations_counted(self):
        integrations = [{"status": "active"}, {"status": "inactive"}, {"status": "active"}]
        assert compute_dashboard_metrics([], [], integrations, today=TODAY).active_integrations == 2


# ── Trend ────────────────────────────────────────────────────────────────


class TestExecutionTrend:

    def test_trend_buckets_by_calendar_day(self):
        day_1 = TODAY - timedelta(days=1)
        day_2 = TODAY - timedelta(days=2)
        executions = [_execution(day_1) for _ in range(3)] + [_execution(day_2) for _ in range(7)]

        metrics = compute_dashboard_metrics([], executions, [], today=TODAY)

        trend = metrics.execution_trend
        assert len(trend) == 7
        assert [p["date"] for p in trend] == sorted(p["date"] for p in trend)
        assert trend[-1] == {"date": TODAY.isoformat(), "executions": 0}
        assert trend[-2] == {"date": day_1.isoformat(), "executions": 3}
        assert trend[-3] == {"date": day_2.isoformat(), "executions": 7}
        assert metrics.total_executions == 10

    def test_day_boundary_uses_calendar_date_not_24h(self):
        yesterday = TODAY - timedelta(days=1)
        executions = [_execution(yesterday, hour=0), _execution(yesterday, hour=23)]
        trend = execution_trend(executions, TODAY)
        assert trend[-2]["executions"] == 2

    def test_executions_outside_window_ignored(self):
        old = _execution(TODAY - timedelta(days=7))
        recent = _execution(TODAY - timedelta(days=6))
        metrics = compute_dashboard_metrics([], [old, recent], [], today=TODAY)
        assert metrics.total_executions == 1
        assert sum(p["executions"] for p in metrics.execution_trend) == 1

    def test_recent_activity_newest_first_and_capped(self):
        executions = [_execution(TODAY, hour=h) for h in range(12)]
        recent = compute_dashboard_metrics([], executions, [], today=TODAY).recent_activity
        assert len(recent) == 10
        assert recent[0]["executed_at"] == _at(TODAY, 11)


# ── Test metrics ─────────────────────────────────────────────────────────


class TestTestMetrics:

    def test_empty_window_is_all_zeros(self):
        metrics = compute_test_metrics([], "2024-01-01", "2024-01-31")
        assert metrics.to_dict(include_executions=False) == {
            "total_tests": 0,
            "passed_tests": 0,
            "failed_tests": 0,
            "skipped_tests": 0,
            "pass_rate": 0.0,
            "avg_execution_time": 0.0,
        }

    def test_window_is_inclusive_of_both_ends(self):
        executions = [
            _execution(date(2024, 1, 1), hour=0),
            _execution(date(2024, 1, 31), hour=23),
            _execution(date(2024, 2, 1), hour=0),
            _execution(date(2023, 12, 31), hour=23),
        ]
        assert compute_test_metrics(executions, "2024-01-01", "2024-01-31").total_tests == 2

    def test_average_duration_rounded_to_two_places(self):
        day = date(2024, 1, 5)
        executions = [
            _execution(day, "passed", 1.234),
            _execution(day, "failed", 2.0),
            _execution(day, "passed", 3.0),
        ]
        metrics = compute_test_metrics(executions, "2024-01-01", "2024-01-31")
        assert metrics.avg_execution_time == 2.08
        assert metrics.pass_rate == pytest.approx(200 / 3)
        assert len(metrics.executions) == 3

    def test_inverted_window_raises(self):
        with pytest.raises(InvalidRangeError):
            compute_test_metrics([], "2024-02-01", "2024-01-01")

    def test_malformed_date_raises_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            compute_test_metrics([], "01/01/2024", "2024-01-31")
        assert "date_from" in exc_info.value.details

    def test_missing_date_raises_validation_error(self):
        with pytest.raises(ValidationError):
            compute_test_metrics([], None, "2024-01-31")


# ── Gateway-backed aggregator ────────────────────────────────────────────


class TestMetricsAggregator:

    @pytest.mark.asyncio
    async def test_dashboard_metrics_from_store(self, gateway, seed):
        tc_done = await seed.test_case(status="done", type="regression")
        tc_todo = await seed.test_case(status="todo", type="smoke")
        noon = lambda d: datetime.combine(d, time(12), tzinfo=timezone.utc)  # noqa: E731
        await seed.execution(tc_done["id"], "passed", noon(TODAY))
        await seed.execution(tc_done["id"], "failed", noon(TODAY - timedelta(days=1)))
        await seed.execution(tc_todo["id"], "passed", noon(TODAY - timedelta(days=30)))
        await seed.integration(status="active")
        await seed.integration(status="inactive")

        metrics = await MetricsAggregator(gateway).dashboard_metrics(today=TODAY)

        assert metrics.total_test_cases == 2
        assert metrics.total_executions == 2
        assert metrics.pass_rate == 50.0
        assert metrics.active_integrations == 1
        assert metrics.test_cases_by_type == {"regression": 1, "smoke": 1}
        assert metrics.execution_trend[-1]["executions"] == 1
        assert metrics.execution_trend[-2]["executions"] == 1

    @pytest.mark.asyncio
    async def test_test_metrics_from_store(self, gateway, seed):
        tc = await seed.test_case()
        in_window = datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc)
        out_of_window = datetime(2024, 2, 1, 0, 30, tzinfo=timezone.utc)
        await seed.execution(tc["id"], "passed", in_window, execution_time=2.5)
        await seed.execution(tc["id"], "failed", out_of_window)

        metrics = await MetricsAggregator(gateway).test_metrics("2024-01-01", "2024-01-31")

        assert metrics.total_tests == 1
        assert metrics.passed_tests == 1
        assert metrics.avg_execution_time == 2.5

    @pytest.mark.asyncio
    async def test_read_failure_propagates(self, faulty_gateway):
        from qadash.core.exceptions import PersistenceError

        faulty_gateway.fail_on.add(("read", "test_executions"))
        with pytest.raises(PersistenceError):
            await MetricsAggregator(faulty_gateway).test_metrics("2024-01-01", "2024-01-31")
