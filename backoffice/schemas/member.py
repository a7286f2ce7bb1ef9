"""
Member Schemas
"""
from datetime import datetime
from typing import Optional

from pydantic import EmailStr

from backoffice.models import MemberRole
from backoffice.schemas.base import CamelModel


class MemberInvite(CamelModel):
    email: EmailStr
    role: MemberRole = MemberRole.VIEWER


class MemberRoleUpdate(CamelModel):
    role: MemberRole


class MemberUser(CamelModel):
    id: str
    name: str
    email: str


class MemberResponse(CamelModel):
    org_id: str
    user_id: str
    role: MemberRole
    invited_by: Optional[str] = None
    invited_at: datetime
    accepted_at: Optional[datetime] = None
    user: MemberUser
