"""
Report Materializer.

``generate_report`` validates the window, computes ``TestMetrics`` for it
and persists one ``completed`` Report row describing the result. The
window is checked before anything is read or written: an inverted range
raises ``InvalidRangeError`` and leaves the store untouched.
"""

from __future__ import annotations

import logging

from qadash.core.exceptions import ValidationError
from qadash.services.helpers.dates import parse_range, utc_today

logger = logging.getLogger(__name__)


def default_report_name(report_type: str, on=None) -> str:
    """``"<Type> Report - <YYYY-MM-DD>"``."""
    label = report_type.replace("_", " ").strip().title()
    return f"{label} Report - {(on or utc_today()).isoformat()}"


class ReportMaterializer:
    """Persists reports together with the metrics that justify them.

    Args:
        gateway: PersistenceGateway instance.
        metrics: MetricsAggregator used for the window's TestMetrics.
        user_id: Owner of generated reports.
        notifications: Optional NotificationService.
    """

    def __init__(self, gateway, metrics, user_id: str, notifications=None) -> None:
        self.gateway = gateway
        self.metrics = metrics
        self.user_id = user_id
        self.notifications = notifications

    async def generate_report(self, report_type, date_from, date_to, *, name=None) -> dict:
        """Create a completed report for ``[date_from, date_to]``.

        Returns:
            ``{"report": <Report dict>, "metrics": <TestMetrics dict>}``

        Raises:
            ValidationError: empty type or malformed date.
            InvalidRangeError: ``date_from`` after ``date_to``.
        """
        if not isinstance(report_type, str) or not report_type.strip():
            raise ValidationError("report type is required", details={"type": "missing"})
        report_type = report_type.strip()
        start, end = parse_range(date_from, date_to)

        metrics = await self.metrics.test_metrics(start, end)
        report = await self.gateway.insert("reports", {
            "user_id": self.user_id,
            "name": name or default_report_name(report_type),
            "type": report_type,
            "date_from": start,
            "date_to": end,
            "status": "completed",
            "description": f"Generated report with {metrics.total_tests} test executions",
        })
        logger.info("Report %s generated type=%s window=%s..%s executions=%d",
                    report["id"], report_type, start, end, metrics.total_tests)

        if self.notifications is not None:
            await self.notifications.notify(
                title="Report Generated",
                message=f"{report['name']} is ready",
                type="success",
            )
        return {"report": report, "metrics": metrics.to_dict()}

    async def list_reports(self, limit: int = 20) -> list[dict]:
        """The user's reports, newest first."""
        if limit < 1:
            raise ValidationError("limit must be positive", details={"limit": limit})
        return await self.gateway.read(
            "reports", {"user_id": self.user_id}, order_by="-created_at", limit=limit,
        )
