"""
API Key Model

Only the sha256 hash of the secret and a masked preview are stored.
The plaintext is handed out once, in the creation response.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from datetime import datetime
from backoffice.database import Base
import uuid


class ApiKey(Base):
    __tablename__ = "api_keys"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    key_hash = Column(String(64), nullable=False, unique=True)
    key_preview = Column(String(64), nullable=False)
    last_used_at = Column(DateTime, nullable=True)

    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_api_key_org_created", "org_id", "created_at"),
    )

    def __repr__(self):
        return f"<ApiKey {self.name} {self.key_preview} (org={self.org_id})>"
