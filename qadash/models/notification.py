"""
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking
"""

from sqlalchemy import Boolean, Column, DateTime, String, Text

from qadash.models import Base, _iso, _utcnow, _uuid


NOTIFICATION_TYPES = {"info", "success", "warning", "error"}


class Notification(Base):
    """In-app notification, one record per user per event."""

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    message = Column(Text, default="")
    type = Column(String(20), default="info")
    action_url = Column(String(500), nullable=True)
    read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "action_url": self.action_url,
            "read": bool(self.read),
            "created_at": _iso(self.created_at),
        }
