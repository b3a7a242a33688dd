"""
Reporting models.

Models:
    - Report: one generated report over an inclusive date window
"""

from sqlalchemy import CheckConstraint, Column, Date, DateTime, String, Text

from qadash.models import Base, _iso, _utcnow, _uuid


class Report(Base):
    """Generated report record, inserted once per generation request."""

    __tablename__ = "reports"
    __table_args__ = (
        CheckConstraint("date_from <= date_to", name="ck_reports_date_range"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    type = Column(String(50), nullable=False, comment="e.g. summary | detailed | execution | coverage")
    date_from = Column(Date, nullable=False)
    date_to = Column(Date, nullable=False)
    status = Column(String(20), default="completed", comment="completed | generating | failed")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "type": self.type,
            "date_from": _iso(self.date_from),
            "date_to": _iso(self.date_to),
            "status": self.status,
            "description": self.description,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Report {self.id}: {self.name} [{self.status}]>"
