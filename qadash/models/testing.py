"""
Testing domain models.

Models:
    - TestCase:       a named, typed, prioritized unit of test intent
    - TestExecution:  immutable record of one run of a TestCase

Architecture ref:
    TestCase ──1:N──▶ TestExecution

TestExecution rows are written only by the Execution Recorder; the
recorder also keeps ``TestCase.status`` / ``TestCase.actual_result`` in
step with the latest outcome.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    String,
    Text,
)

from qadash.models import Base, _iso, _utcnow, _uuid


# ── Constants ────────────────────────────────────────────────────────────

TEST_CASE_TYPES = {
    "smoke", "regression", "integration", "unit", "e2e", "functional", "whitebox",
}

TEST_CASE_STATUSES = {
    "todo", "in_progress", "testing", "done", "failed", "blocked",
}

# Test cases still waiting for a verdict
PENDING_STATUSES = {"todo", "in_progress", "testing"}

EXECUTION_OUTCOMES = {"passed", "failed", "skipped"}


class TestCase(Base):
    """
    Individual test case in the catalog.

    Workflow status moves todo → in_progress → testing → done/failed
    through user edits; executions push it straight to done/failed.
    """

    __tablename__ = "test_cases"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)

    title = Column(String(300), nullable=False)
    description = Column(Text, default="")
    type = Column(
        String(20), default="functional",
        comment="smoke | regression | integration | unit | e2e | functional | whitebox",
    )
    priority = Column(String(10), default="medium", comment="critical | high | medium | low")
    status = Column(
        String(20), default="todo", index=True,
        comment="todo | in_progress | testing | done | failed | blocked",
    )

    expected_result = Column(Text, nullable=True)
    actual_result = Column(Text, nullable=True, comment="Set by the latest execution")
    environment = Column(String(50), nullable=True)
    tags = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "priority": self.priority,
            "status": self.status,
            "expected_result": self.expected_result,
            "actual_result": self.actual_result,
            "environment": self.environment,
            "tags": self.tags or [],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<TestCase {self.id}: {self.title} [{self.status}]>"


class TestExecution(Base):
    """
    One run of a test case.

    Immutable once created. ``execution_time`` is in seconds.
    """

    __tablename__ = "test_executions"

    id = Column(String(36), primary_key=True, default=_uuid)
    test_case_id = Column(
        String(36), ForeignKey("test_cases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    executed_by = Column(String(36), nullable=False)
    status = Column(String(10), nullable=False, comment="passed | failed | skipped")
    execution_time = Column(Float, default=0.0, comment="Seconds")
    error_message = Column(Text, nullable=True)
    executed_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    environment = Column(String(50), nullable=True)
    browser = Column(String(50), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "test_case_id": self.test_case_id,
            "executed_by": self.executed_by,
            "status": self.status,
            "execution_time": self.execution_time,
            "error_message": self.error_message,
            "executed_at": _iso(self.executed_at),
            "environment": self.environment,
            "browser": self.browser,
        }

    def __repr__(self):
        return f"<TestExecution {self.id}: case#{self.test_case_id} → {self.status}>"
