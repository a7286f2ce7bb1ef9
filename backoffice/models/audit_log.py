"""
Audit Log Model

Append-only. Rows are inserted by the audit recorder and never
updated or deleted; the store exposes no mutation for them.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Integer, JSON
from datetime import datetime
from backoffice.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    # Autoincrement gives a monotonic ordering independent of clock resolution
    id = Column(Integer, primary_key=True, autoincrement=True)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)

    # NULL for system actions (e.g. billing webhooks)
    actor_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    action = Column(String(50), nullable=False)
    entity = Column(String(50), nullable=False)
    entity_id = Column(String(255), nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_audit_org_id", "org_id", "id"),
    )

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity}:{self.entity_id} (org={self.org_id})>"
