"""
Tabular-data provider client (Airtable REST API).

Used by the pipeline sync: list a base's tables, read records from a
table, and upsert records in batches.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from backoffice.core.exceptions import ExternalServiceError
from backoffice.integrations.http import send_with_retry

logger = logging.getLogger(__name__)

SERVICE_NAME = "Airtable"

# Airtable accepts at most 10 records per write request
UPSERT_BATCH_SIZE = 10


class AirtableClient:
    def __init__(self, api_key: str, api_base: str = "https://api.airtable.com", timeout: float = 10.0):
        if not api_key:
            raise ValueError("Airtable API key is required")
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.api_base}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await send_with_retry(
                    client, method, url, params=params, json=json, headers=self._headers()
                )
        except httpx.HTTPError as e:
            logger.error(f"Airtable request to {path} failed: {e}")
            raise ExternalServiceError(SERVICE_NAME, str(e)) from e

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(
                f"Airtable request to {path} returned {response.status_code}: {message}",
                extra={"event": "airtable.error", "status_code": response.status_code},
            )
            raise ExternalServiceError(SERVICE_NAME, message)

        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error = response.json()["error"]
        except (ValueError, KeyError, TypeError):
            return f"HTTP {response.status_code}"
        if isinstance(error, dict):
            return error.get("message") or error.get("type") or f"HTTP {response.status_code}"
        return str(error)

    async def list_tables(self, base_id: str) -> List[Dict[str, Any]]:
        """Tables of a base as ``{"id", "name", "fields": [field names]}``."""
        data = await self._request("GET", f"/v0/meta/bases/{base_id}/tables")
        return [
            {
                "id": table["id"],
                "name": table["name"],
                "fields": [field["name"] for field in table.get("fields", [])],
            }
            for table in data.get("tables", [])
        ]

    async def list_records(self, base_id: str, table: str) -> List[Dict[str, Any]]:
        """Every record of a table, following pagination offsets."""
        records: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {}
        while True:
            data = await self._request("GET", f"/v0/{base_id}/{table}", params=params)
            records.extend(data.get("records", []))
            offset = data.get("offset")
            if not offset:
                return records
            params = {"offset": offset}

    async def upsert_records(
        self,
        base_id: str,
        table: str,
        rows: List[Dict[str, Any]],
        merge_on: List[str],
    ) -> List[Dict[str, Any]]:
        """
        Create-or-update rows keyed on ``merge_on`` fields.

        Returns the stored records (``{"id", "fields"}``) in input order.
        """
        stored: List[Dict[str, Any]] = []
        for start in range(0, len(rows), UPSERT_BATCH_SIZE):
            batch = rows[start:start + UPSERT_BATCH_SIZE]
            data = await self._request("PATCH", f"/v0/{base_id}/{table}", json={
                "performUpsert": {"fieldsToMergeOn": merge_on},
                "typecast": True,
                "records": [{"fields": fields} for fields in batch],
            })
            stored.extend(data.get("records", []))
        return stored
