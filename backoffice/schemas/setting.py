"""
Setting Schemas
"""
from datetime import datetime
from typing import Any, Optional

from backoffice.schemas.base import CamelModel


class SettingUpdate(CamelModel):
    value: Any


class SettingResponse(CamelModel):
    key: str
    value: Any = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None
