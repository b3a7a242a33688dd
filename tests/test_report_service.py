"""Tests for qadash.services.report_service — ReportMaterializer.

Coverage:
  1. report row + metrics returned together
  2. inverted / malformed windows fail before any write
  3. default naming and description
  4. listing newest first
"""

from datetime import date, datetime, timezone

import pytest

from qadash.core.exceptions import InvalidRangeError, ValidationError
from qadash.services.helpers.dates import utc_today
from qadash.services.metrics import MetricsAggregator
from qadash.services.notification_service import NotificationService
from qadash.services.report_service import ReportMaterializer, default_report_name

from conftest import USER_ID


def _materializer(gateway):
    return ReportMaterializer(
        gateway,
        MetricsAggregator(gateway),
        USER_ID,
        notifications=NotificationService(gateway, USER_ID),
    )


class TestGenerateReport:

    @pytest.mark.asyncio
    async def test_report_persisted_with_metrics(self, gateway, seed):
        tc = await seed.test_case()
        await seed.execution(tc["id"], "passed", datetime(2024, 1, 5, 9, tzinfo=timezone.utc))
        await seed.execution(tc["id"], "failed", datetime(2024, 1, 6, 9, tzinfo=timezone.utc))
        await seed.execution(tc["id"], "passed", datetime(2024, 3, 1, 9, tzinfo=timezone.utc))

        bundle = await _materializer(gateway).generate_report("summary", "2024-01-01", "2024-01-31")

        report, metrics = bundle["report"], bundle["metrics"]
        assert report["status"] == "completed"
        assert report["type"] == "summary"
        assert report["date_from"] == "2024-01-01"
        assert report["date_to"] == "2024-01-31"
        assert report["user_id"] == USER_ID
        assert report["description"] == "Generated report with 2 test executions"
        assert report["name"] == f"Summary Report - {utc_today().isoformat()}"
        assert metrics["total_tests"] == 2
        assert metrics["pass_rate"] == 50.0
        assert (await gateway.fetch_one("reports", report["id"]))["name"] == report["name"]

    @pytest.mark.asyncio
    async def test_empty_window_still_completes(self, gateway):
        bundle = await _materializer(gateway).generate_report(
            "execution", date(2024, 1, 1), date(2024, 1, 1), name="New year",
        )
        assert bundle["report"]["name"] == "New year"
        assert bundle["report"]["description"] == "Generated report with 0 test executions"
        assert bundle["metrics"]["total_tests"] == 0

    @pytest.mark.asyncio
    async def test_inverted_range_writes_nothing(self, faulty_gateway):
        with pytest.raises(InvalidRangeError):
            await _materializer(faulty_gateway).generate_report("summary", "2024-02-01", "2024-01-01")
        assert faulty_gateway.writes == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("report_type,date_from,date_to", [
        ("", "2024-01-01", "2024-01-31"),
        (None, "2024-01-01", "2024-01-31"),
        ("summary", "yesterday", "2024-01-31"),
        ("summary", "2024-01-01", None),
    ])
    async def test_invalid_input_writes_nothing(self, faulty_gateway, report_type, date_from, date_to):
        with pytest.raises(ValidationError):
            await _materializer(faulty_gateway).generate_report(report_type, date_from, date_to)
        assert faulty_gateway.writes == []

    @pytest.mark.asyncio
    async def test_generation_emits_notification(self, gateway):
        await _materializer(gateway).generate_report("summary", "2024-01-01", "2024-01-31")
        notifications = await gateway.read("notifications")
        assert [n["title"] for n in notifications] == ["Report Generated"]


class TestListReports:

    @pytest.mark.asyncio
    async def test_newest_first_with_limit(self, gateway):
        materializer = _materializer(gateway)
        for name in ("first", "second", "third"):
            await materializer.generate_report("summary", "2024-01-01", "2024-01-31", name=name)

        assert [r["name"] for r in await materializer.list_reports()] == ["third", "second", "first"]
        assert [r["name"] for r in await materializer.list_reports(limit=1)] == ["third"]


def test_default_report_name():
    assert default_report_name("test_coverage", date(2024, 5, 1)) == "Test Coverage Report - 2024-05-01"
