"""
Provider sync variants.

Each external tool an Integration can point at is a ``Provider`` member.
Providers that can actually be synced have a ``ProviderSync`` subclass
carrying its own configuration dataclass, parsed from the integration's
free-form ``configuration`` mapping:

    provider   variant      config         behaviour
    --------   ----------   ------------   ---------------------------------
    jira       JiraSync     JiraConfig     push test cases, at most 10/call
    trello     TrelloSync   TrelloConfig   create cards, at most 8/call
    slack      SlackSync    SlackConfig    one summary message, count = 1

Everything else (testrail, github, jenkins, other, unknown strings) has no
variant; ``resolve_provider`` returns None and the coordinator records
``UNSUPPORTED_PROVIDER`` without contacting anything.

Jira and Trello pushes are simulated (optional latency). Slack posts to a
real incoming webhook through ``WebhookGateway`` when one is configured.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Mapping, Sequence

from qadash.core.exceptions import ProviderError
from qadash.integrations.webhook_gateway import WebhookGateway

logger = logging.getLogger(__name__)

UNSUPPORTED_PROVIDER = "Unsupported provider"


class Provider(str, Enum):
    JIRA = "jira"
    TRELLO = "trello"
    SLACK = "slack"
    TESTRAIL = "testrail"
    GITHUB = "github"
    JENKINS = "jenkins"
    OTHER = "other"

    @classmethod
    def parse(cls, value) -> Provider | None:
        """Enum member for ``value`` (case-insensitive), None if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass
class SyncResult:
    """Outcome of one provider sync step."""

    success: bool
    synced_count: int = 0
    message: str = ""
    error: str | None = None
    synced_ids: list[str] = field(default_factory=list)
    sync_id: str | None = None
    # Outbound call details (GatewayResult.to_log_dict), kept in sync_data
    delivery: dict | None = None

    @classmethod
    def failure(cls, error: str, message: str | None = None) -> SyncResult:
        return cls(success=False, synced_count=0, message=message or error, error=error)

    def to_dict(self) -> dict:
        d = {
            "success": self.success,
            "synced_count": self.synced_count,
            "message": self.message,
        }
        if self.error is not None:
            d["error"] = self.error
        if self.sync_id is not None:
            d["sync_id"] = self.sync_id
        return d


# ═════════════════════════════════════════════════════════════════════════════
# Configuration shapes
# ═════════════════════════════════════════════════════════════════════════════

class _ProviderConfig:
    """Mixin: build a config dataclass from a free-form mapping.

    Unknown keys are ignored; present values are coerced to ``str``.
    """

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None):
        data = dict(data or {})
        kwargs = {}
        for f in fields(cls):
            value = data.get(f.name)
            if value is not None and value != "":
                kwargs[f.name] = str(value).strip()
        return cls(**kwargs)


@dataclass
class JiraConfig(_ProviderConfig):
    server_url: str | None = None
    username: str | None = None
    api_token: str | None = None
    project_key: str | None = None


@dataclass
class TrelloConfig(_ProviderConfig):
    api_key: str | None = None
    token: str | None = None
    board_id: str | None = None


@dataclass
class SlackConfig(_ProviderConfig):
    webhook_url: str | None = None
    channel: str | None = None
    bot_token: str | None = None


# ═════════════════════════════════════════════════════════════════════════════
# Variants
# ═════════════════════════════════════════════════════════════════════════════

class ProviderSync(ABC):
    """Capability interface: one implementation per syncable provider."""

    provider: Provider
    config_class: type

    def parse_config(self, configuration: Mapping[str, Any] | None,
                     webhook_url: str | None = None):
        """Provider config from an Integration row's ``configuration``.

        ``webhook_url`` is the Integration column of the same name; it fills
        the config only when the mapping does not carry one itself.
        """
        configuration = dict(configuration or {})
        if webhook_url and not configuration.get("webhook_url"):
            configuration["webhook_url"] = webhook_url
        return self.config_class.from_mapping(configuration)

    @abstractmethod
    async def sync(self, config, test_cases: Sequence[dict]) -> SyncResult:
        """Push ``test_cases`` to the provider.

        Raises:
            ProviderError: The provider rejected or failed the call.
        """


class BatchProviderSync(ProviderSync):
    """Push up to ``batch_cap`` test cases per call; the rest wait for the next sync."""

    batch_cap: int = 10
    display_name: str = ""
    item_label: str = "test cases"

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency

    async def sync(self, config, test_cases):
        test_cases = list(test_cases)
        batch = test_cases[: self.batch_cap]
        await self._push(config, batch)
        if len(test_cases) > len(batch):
            logger.info("%s batch capped: %d of %d test cases pushed",
                        self.display_name, len(batch), len(test_cases),
                        extra={"provider": self.provider.value})
        return SyncResult(
            success=True,
            synced_count=len(batch),
            message=f"Successfully synced {len(batch)} {self.item_label} to {self.display_name}",
            synced_ids=[tc.get("id") for tc in batch],
        )

    async def _push(self, config, batch: list[dict]) -> None:
        # Remote API not wired yet: only the round trip is simulated
        if self.latency:
            await asyncio.sleep(self.latency)


class JiraSync(BatchProviderSync):
    provider = Provider.JIRA
    config_class = JiraConfig
    batch_cap = 10
    display_name = "Jira"


class TrelloSync(BatchProviderSync):
    provider = Provider.TRELLO
    config_class = TrelloConfig
    batch_cap = 8
    display_name = "Trello"
    item_label = "cards"


class SlackSync(ProviderSync):
    """Send one test summary message; always counts as one synced item.

    Args:
        webhook_gateway: Used when the config carries a ``webhook_url``.
        latency: Simulated send time when no webhook is configured.
    """

    provider = Provider.SLACK
    config_class = SlackConfig

    def __init__(self, webhook_gateway: WebhookGateway | None = None,
                 latency: float = 0.0) -> None:
        self.webhook_gateway = webhook_gateway
        self.latency = latency

    @staticmethod
    def build_summary(test_cases: Sequence[dict]) -> str:
        if not test_cases:
            return "Test summary: no test cases in this sync"
        by_status = Counter(tc.get("status") or "unknown" for tc in test_cases)
        parts = ", ".join(f"{status}: {count}" for status, count in sorted(by_status.items()))
        return f"Test summary: {len(test_cases)} test cases ({parts})"

    async def sync(self, config, test_cases):
        text = self.build_summary(test_cases)
        delivery = None
        if config.webhook_url and self.webhook_gateway is not None:
            payload = {"text": text}
            if config.channel:
                payload["channel"] = config.channel
            result = await self.webhook_gateway.post_json(config.webhook_url, payload)
            if not result.ok:
                raise ProviderError(self.provider.value, f"Slack webhook failed: {result.error}")
            delivery = result.to_log_dict()
        elif self.latency:
            await asyncio.sleep(self.latency)
        return SyncResult(
            success=True,
            synced_count=1,
            message="Sent test summary to Slack",
            synced_ids=[tc.get("id") for tc in test_cases],
            delivery=delivery,
        )


# ═════════════════════════════════════════════════════════════════════════════
# Registry
# ═════════════════════════════════════════════════════════════════════════════

def default_providers(webhook_gateway: WebhookGateway | None = None,
                      latency: float = 0.0) -> dict[Provider, ProviderSync]:
    """Registry of every provider that has a sync variant."""
    return {
        Provider.JIRA: JiraSync(latency=latency),
        Provider.TRELLO: TrelloSync(latency=latency),
        Provider.SLACK: SlackSync(webhook_gateway=webhook_gateway, latency=latency),
    }


def resolve_provider(registry: Mapping[Provider, ProviderSync], value) -> ProviderSync | None:
    """Variant for a stored ``provider`` string, None when unsupported."""
    provider = Provider.parse(value)
    if provider is None:
        return None
    return registry.get(provider)
