"""
User Schemas

Public view of a user. The password hash never leaves the service.
"""
from datetime import datetime

from backoffice.schemas.base import CamelModel


class UserResponse(CamelModel):
    id: str
    email: str
    name: str
    created_at: datetime


class UserSummary(CamelModel):
    """Author/member reference embedded in other responses."""
    id: str
    name: str
