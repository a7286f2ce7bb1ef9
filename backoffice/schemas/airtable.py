"""
Airtable Schemas
"""
from datetime import datetime
from typing import List, Literal, Optional

from backoffice.schemas.base import CamelModel


class AirtableTestRequest(CamelModel):
    """Credentials may be omitted when already stored as settings."""
    api_key: Optional[str] = None
    base_id: Optional[str] = None


class AirtableTable(CamelModel):
    id: str
    name: str
    fields: List[str] = []


class AirtableTestResponse(CamelModel):
    success: bool = True
    tables: List[AirtableTable]


class AirtableSyncRequest(CamelModel):
    direction: Literal["push", "pull", "both"] = "both"


class AirtableSyncResponse(CamelModel):
    success: bool
    synced_leads: int
    synced_stages: int
    direction: str
    timestamp: datetime
