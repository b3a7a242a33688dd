"""
Integration Sync Coordinator — one-shot provider sync with a durable audit trail.

State machine per call:

    not-started → in_progress → success | failed

``in_progress`` is persisted before the provider is contacted, so an
interrupted process leaves visible evidence. The terminal update is
written exactly once from a ``finally`` block: it runs when the provider
step succeeds, fails, times out or is cancelled.

Provider failures never escape ``sync_integration``: ``ProviderError``,
timeouts, unexpected exceptions and variants that return something other
than a ``SyncResult`` all become a failed ``SyncResult``. The
integration's own ``status`` does not gate the sync.
``NotFoundError`` (unknown integration) and ``PersistenceError`` (the
audit writes themselves) do propagate.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timezone

from qadash.core.exceptions import ProviderError, ValidationError
from qadash.integrations.providers import (
    UNSUPPORTED_PROVIDER,
    SyncResult,
    default_providers,
    resolve_provider,
)

logger = logging.getLogger(__name__)

SYNC_CANCELLED = "Sync cancelled before the provider step completed"
NO_PROVIDER_RESULT = "Provider returned no result"


class IntegrationSyncCoordinator:
    """Drives provider sync steps and records every attempt.

    Args:
        gateway: PersistenceGateway instance.
        providers: ``Provider -> ProviderSync`` registry; defaults to
            ``default_providers()``.
        notifications: Optional NotificationService.
        provider_timeout: Seconds allowed per provider step; falsy disables it.
        serialize_per_integration: Run syncs of the same integration one at
            a time within an event loop.
    """

    def __init__(
        self,
        gateway,
        *,
        providers=None,
        notifications=None,
        provider_timeout: float | None = 30.0,
        serialize_per_integration: bool = False,
    ) -> None:
        self.gateway = gateway
        self.providers = providers if providers is not None else default_providers()
        self.notifications = notifications
        self.provider_timeout = provider_timeout
        self.serialize_per_integration = serialize_per_integration
        # event loop -> {integration_id: Lock}
        self._locks: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()

    # ── Public API ────────────────────────────────────────────────────────

    async def sync_integration(self, integration_id: str, test_cases=None) -> SyncResult:
        """Sync ``test_cases`` to the integration's provider.

        Returns:
            SyncResult; ``sync_id`` is the IntegrationSync row written for
            this attempt.

        Raises:
            NotFoundError: No integration with that id.
            PersistenceError: The attempt could not be recorded.
        """
        test_cases = list(test_cases or [])
        integration = await self.gateway.fetch_one("integrations", integration_id)

        if not self.serialize_per_integration:
            return await self._run(integration, test_cases)
        async with self._lock_for(integration_id):
            return await self._run(integration, test_cases)

    async def list_sync_history(self, integration_id: str | None = None, limit: int = 10) -> list[dict]:
        """Most recent sync attempts, newest first."""
        if limit < 1:
            raise ValidationError("limit must be positive", details={"limit": limit})
        filters = {"integration_id": integration_id} if integration_id else None
        return await self.gateway.read(
            "integration_syncs", filters, order_by="-started_at", limit=limit,
        )

    # ── Internals ─────────────────────────────────────────────────────────

    def _lock_for(self, integration_id: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        per_loop = self._locks.setdefault(loop, {})
        lock = per_loop.get(integration_id)
        if lock is None:
            lock = per_loop[integration_id] = asyncio.Lock()
        return lock

    async def _run(self, integration: dict, test_cases: list[dict]) -> SyncResult:
        log_extra = {"integration_id": integration["id"], "provider": integration.get("provider")}
        sync = await self.gateway.insert("integration_syncs", {
            "integration_id": integration["id"],
            "sync_status": "in_progress",
            "synced_items": 0,
        })
        log_extra["sync_id"] = sync["id"]
        logger.info("Sync %s started for integration %s (%d test cases)",
                    sync["id"], integration["id"], len(test_cases), extra=log_extra)

        result = SyncResult.failure(SYNC_CANCELLED)
        try:
            result = await self._invoke_provider(integration, test_cases, log_extra)
        finally:
            await self._finish(sync, integration, result, log_extra)

        result.sync_id = sync["id"]
        await self._notify(integration, result)
        return result

    async def _invoke_provider(self, integration: dict, test_cases: list[dict],
                               log_extra: dict) -> SyncResult:
        variant = resolve_provider(self.providers, integration.get("provider"))
        if variant is None:
            logger.warning("No sync variant for provider %r", integration.get("provider"),
                           extra=log_extra)
            return SyncResult.failure(UNSUPPORTED_PROVIDER)

        try:
            config = variant.parse_config(
                integration.get("configuration"), integration.get("webhook_url"),
            )
            result = await asyncio.wait_for(
                variant.sync(config, test_cases), timeout=self.provider_timeout or None,
            )
        except asyncio.TimeoutError:
            error = f"Provider sync timed out after {self.provider_timeout:g}s"
            logger.warning(error, extra=log_extra)
            return SyncResult.failure(error)
        except ProviderError as exc:
            logger.warning("Provider %s rejected sync: %s", exc.provider, exc, extra=log_extra)
            return SyncResult.failure(str(exc))
        except Exception as exc:
            logger.exception("Provider step crashed", extra=log_extra)
            return SyncResult.failure(str(exc) or type(exc).__name__)

        if not isinstance(result, SyncResult):
            logger.error("Provider %s returned %r instead of a SyncResult",
                         variant.provider.value, type(result).__name__, extra=log_extra)
            return SyncResult.failure(NO_PROVIDER_RESULT)
        return result

    async def _finish(self, sync: dict, integration: dict, result: SyncResult,
                      log_extra: dict) -> None:
        status = "success" if result.success else "failed"
        sync_data = {
            "provider": integration.get("provider"),
            "message": result.message,
            "synced_test_cases": result.synced_ids,
        }
        if result.delivery:
            sync_data["delivery"] = result.delivery
        await self.gateway.update("integration_syncs", {
            "sync_status": status,
            "synced_items": result.synced_count,
            "completed_at": datetime.now(timezone.utc),
            "error_message": result.error,
            "sync_data": sync_data,
        }, {"id": sync["id"]})
        if result.success:
            logger.info("Sync %s finished: %s", sync["id"], result.message, extra=log_extra)
        else:
            logger.warning("Sync %s failed: %s", sync["id"], result.error, extra=log_extra)

    async def _notify(self, integration: dict, result: SyncResult) -> None:
        if self.notifications is None:
            return
        name = integration.get("name") or integration.get("provider")
        if result.success:
            await self.notifications.notify(
                title="Integration Sync Complete",
                message=f"{name}: {result.message}",
                type="success",
            )
        else:
            await self.notifications.notify(
                title="Integration Sync Failed",
                message=f"{name}: {result.error}",
                type="error",
            )
