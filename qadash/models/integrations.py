"""External integration models: provider connections and their sync attempts."""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)

from qadash.models import Base, _iso, _utcnow, _uuid


# ── Integration ──────────────────────────────────────────────────────

class Integration(Base):
    """Configured connection to an external provider (issue tracker, chat, CI)."""

    __tablename__ = "integrations"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), default="")
    type = Column(
        String(30), default="testing_tool",
    )  # ci_cd | testing_tool | communication | monitoring
    provider = Column(String(30), nullable=False)  # jira | trello | slack | testrail | ...
    configuration = Column(JSON, default=dict)  # provider-specific keys
    webhook_url = Column(String(500), nullable=True)
    status = Column(String(20), default="active", index=True)  # active | inactive
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "type": self.type,
            "provider": self.provider,
            "configuration": self.configuration or {},
            "webhook_url": self.webhook_url,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ── Sync attempt log ─────────────────────────────────────────────────

class IntegrationSync(Base):
    """One sync attempt against an integration's provider.

    Inserted as ``in_progress`` before the provider is contacted and
    updated exactly once to ``success`` or ``failed``.
    """

    __tablename__ = "integration_syncs"

    id = Column(String(36), primary_key=True, default=_uuid)
    integration_id = Column(
        String(36),
        ForeignKey("integrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sync_status = Column(String(20), default="in_progress")  # in_progress | success | failed
    synced_items = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)
    sync_data = Column(JSON, nullable=True)  # {"provider", "message", "synced_test_cases", "delivery"?}
    started_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "integration_id": self.integration_id,
            "sync_status": self.sync_status,
            "synced_items": self.synced_items or 0,
            "error_message": self.error_message,
            "sync_data": self.sync_data,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
        }
