"""
API Key Schemas

ApiKeyResponse carries the masked preview only. The plaintext value appears
in ApiKeyCreated, which is returned once, by the create endpoint.
"""
from datetime import datetime
from typing import Optional

from pydantic import Field

from backoffice.schemas.base import CamelModel


class ApiKeyCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)


class ApiKeyResponse(CamelModel):
    id: str
    name: str
    key_preview: str
    last_used_at: Optional[datetime] = None
    created_by: str
    created_at: datetime


class ApiKeyCreated(CamelModel):
    key: ApiKeyResponse
    key_value: str
