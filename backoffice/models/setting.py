"""
Setting Model

Organization-scoped key/value pairs with JSON values. Writing an
existing key replaces its value.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from datetime import datetime
from backoffice.database import Base


class Setting(Base):
    __tablename__ = "settings"

    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True)
    key = Column(String(255), primary_key=True)

    value = Column(JSON, nullable=True)

    updated_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Setting {self.key} (org={self.org_id})>"
