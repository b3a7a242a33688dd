"""
DataFlowService — the operations the dashboard UI calls.

Wires the Metrics Aggregator, Execution Recorder, Integration Sync
Coordinator, Report Materializer and Notification service around one
Persistence Gateway. Construct it explicitly (or via ``from_config``) and
pass it where it is needed; there is no module-level instance.

Usage:
    from qadash.services.data_flow import DataFlowService
    svc = DataFlowService(gateway, user_id="00000000-0000-0000-0000-000000000001")
    metrics = await svc.compute_dashboard_metrics()
    execution = await svc.record_execution("tc-1", "passed", 2.5)
    result = await svc.sync_integration("int-1")
    bundle = await svc.generate_report("summary", "2024-01-01", "2024-01-31")
"""

from __future__ import annotations

from typing import Any, Mapping

from qadash.core.exceptions import ValidationError
from qadash.integrations.providers import default_providers
from qadash.integrations.webhook_gateway import WebhookGateway
from qadash.services.execution_service import ExecutionRecorder
from qadash.services.integration_sync_service import IntegrationSyncCoordinator
from qadash.services.metrics import MetricsAggregator
from qadash.services.notification_service import NotificationService
from qadash.services.report_service import ReportMaterializer


DEFAULT_BATCH_SIZE = 20


class DataFlowService:
    """Facade over the data-flow components.

    Args:
        gateway: PersistenceGateway instance shared by every component.
        user_id: The dashboard user; owner of created rows.
        providers: Provider sync registry (see ``default_providers``).
        provider_timeout: Seconds allowed per provider step.
        serialize_syncs: One in-flight sync per integration id.
        default_batch_size: Test cases loaded when a sync call names none.
    """

    def __init__(
        self,
        gateway,
        user_id: str,
        *,
        providers=None,
        provider_timeout: float | None = 30.0,
        serialize_syncs: bool = False,
        default_batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.gateway = gateway
        self.user_id = user_id
        self.default_batch_size = default_batch_size

        self.notifications = NotificationService(gateway, user_id)
        self.metrics = MetricsAggregator(gateway)
        self.executions = ExecutionRecorder(gateway, user_id, notifications=self.notifications)
        self.syncs = IntegrationSyncCoordinator(
            gateway,
            providers=providers,
            notifications=self.notifications,
            provider_timeout=provider_timeout,
            serialize_per_integration=serialize_syncs,
        )
        self.reports = ReportMaterializer(
            gateway, self.metrics, user_id, notifications=self.notifications,
        )

    @classmethod
    def from_config(cls, gateway, config: Mapping[str, Any],
                    webhook_gateway: WebhookGateway | None = None) -> DataFlowService:
        """Build from a Flask-style config mapping."""
        if webhook_gateway is None:
            webhook_gateway = WebhookGateway(timeout=config.get("WEBHOOK_TIMEOUT_SECONDS", 10))
        providers = default_providers(
            webhook_gateway=webhook_gateway,
            latency=config.get("SYNC_SIMULATED_LATENCY_SECONDS", 0.0),
        )
        return cls(
            gateway,
            config["DEFAULT_USER_ID"],
            providers=providers,
            provider_timeout=config.get("SYNC_PROVIDER_TIMEOUT_SECONDS", 30.0),
            serialize_syncs=config.get("SYNC_SERIALIZE_PER_INTEGRATION", False),
            default_batch_size=config.get("SYNC_DEFAULT_BATCH_SIZE", DEFAULT_BATCH_SIZE),
        )

    # ── Metrics ───────────────────────────────────────────────────────────

    async def compute_dashboard_metrics(self, today=None):
        return await self.metrics.dashboard_metrics(today=today)

    async def compute_test_metrics(self, date_from, date_to):
        return await self.metrics.test_metrics(date_from, date_to)

    # ── Executions ────────────────────────────────────────────────────────

    async def record_execution(self, test_case_id, outcome, execution_time=0.0,
                               error_message=None, **extra):
        return await self.executions.record_execution(
            test_case_id, outcome, execution_time, error_message, **extra,
        )

    async def resync_test_case_status(self, execution_id):
        return await self.executions.resync_test_case_status(execution_id)

    # ── Integrations ──────────────────────────────────────────────────────

    async def sync_integration(self, integration_id, test_cases=None, *, test_case_ids=None):
        """Sync an integration.

        ``test_cases`` wins when given; otherwise ``test_case_ids`` are
        loaded, and with neither the newest ``default_batch_size`` test
        cases of the user are used.
        """
        if test_cases is None:
            test_cases = await self._load_test_cases(test_case_ids)
        return await self.syncs.sync_integration(integration_id, test_cases)

    async def list_sync_history(self, integration_id=None, limit=10):
        return await self.syncs.list_sync_history(integration_id, limit)

    async def _load_test_cases(self, test_case_ids=None) -> list[dict]:
        if test_case_ids is not None:
            if isinstance(test_case_ids, str) or not all(isinstance(i, str) for i in test_case_ids):
                raise ValidationError("test_case_ids must be a list of ids",
                                      details={"test_case_ids": test_case_ids})
            if not test_case_ids:
                return []
            return await self.gateway.read(
                "test_cases", {"id__in": list(test_case_ids)}, order_by="-created_at",
            )
        return await self.gateway.read(
            "test_cases", {"user_id": self.user_id},
            order_by="-created_at", limit=self.default_batch_size,
        )

    # ── Reports ───────────────────────────────────────────────────────────

    async def generate_report(self, report_type, date_from, date_to, *, name=None):
        return await self.reports.generate_report(report_type, date_from, date_to, name=name)

    async def list_reports(self, limit=20):
        return await self.reports.list_reports(limit)

    # ── Notifications ─────────────────────────────────────────────────────

    async def list_notifications(self, limit=10):
        return await self.notifications.list_notifications(limit)

    async def mark_notification_read(self, notification_id):
        return await self.notifications.mark_read(notification_id)
