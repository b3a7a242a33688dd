"""qadash.integrations — External provider sync steps and outbound gateways.

All outbound HTTP calls to third-party APIs must go through a gateway
in this package, never via bare `requests` calls in services or blueprints.

Every provider call is:
  - Dispatched through a ``ProviderSync`` variant chosen by ``Provider``
  - Bounded by the sync coordinator's timeout
  - Recorded in ``integration_syncs`` whether it succeeds or fails

Current modules:
  providers.ProviderSync — Jira, Trello and Slack sync variants
  webhook_gateway.WebhookGateway — JSON webhook POST with retry/backoff
"""
