"""
Airtable Sync Service

Connection test and two-way sync of the pipeline data with an Airtable
base. Credentials come from the request, else from the organization's
settings (``airtable.apiKey`` / ``airtable.baseId``), else from the
AIRTABLE_API_KEY environment setting.

Push writes every stage to the "Stages" table and every lead to the
"Leads" table, upserting on our ids. Pull reads "Leads" back and copies
edited fields onto the matching leads.
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from backoffice.config import get_settings
from backoffice.core.exceptions import InvalidInputError
from backoffice.integrations.airtable_client import AirtableClient
from backoffice.models import Lead, Membership
from backoffice.services.audit import AuditRecorder
from backoffice.services.org_settings import AIRTABLE_API_KEY, AIRTABLE_BASE_ID, SettingsService
from backoffice.store import Store
from backoffice.utils.logging import get_logger

logger = get_logger(__name__)

STAGES_TABLE = "Stages"
LEADS_TABLE = "Leads"
SYNC_DIRECTIONS = ("push", "pull", "both")

# Airtable column -> Lead attribute for fields that travel both ways
LEAD_FIELD_MAP = {
    "Name": "name",
    "Email": "email",
    "Source": "source",
    "Notes": "notes",
}

ClientFactory = Callable[[str], AirtableClient]


class AirtableSyncService:
    def __init__(self, store: Store, client_factory: ClientFactory):
        self.store = store
        self.client_factory = client_factory
        self.settings = SettingsService(store)
        self.audit = AuditRecorder(store)

    def _credentials(
        self,
        org_id: str,
        api_key: Optional[str] = None,
        base_id: Optional[str] = None,
    ) -> Tuple[str, str]:
        api_key = (
            api_key
            or self.settings.get_value(org_id, AIRTABLE_API_KEY)
            or get_settings().AIRTABLE_API_KEY
        )
        base_id = base_id or self.settings.get_value(org_id, AIRTABLE_BASE_ID)
        if not api_key or not base_id:
            raise InvalidInputError("Airtable API key and base ID are required")
        return api_key, base_id

    async def test_connection(
        self,
        actor: Membership,
        api_key: Optional[str] = None,
        base_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        List the base's tables. On success, credentials passed inline are
        stored as settings for later syncs.
        """
        key, base = self._credentials(actor.org_id, api_key, base_id)
        tables = await self.client_factory(key).list_tables(base)

        if api_key:
            self.settings.set(actor, AIRTABLE_API_KEY, api_key)
        if base_id:
            self.settings.set(actor, AIRTABLE_BASE_ID, base_id)
        logger.info(f"Airtable connection ok for {actor.org_id}: {len(tables)} table(s)")
        return tables

    async def sync(self, actor: Membership, direction: str = "both") -> Dict[str, Any]:
        if direction not in SYNC_DIRECTIONS:
            raise InvalidInputError(f"direction must be one of {', '.join(SYNC_DIRECTIONS)}")
        key, base = self._credentials(actor.org_id)
        client = self.client_factory(key)

        synced_stages = 0
        synced_leads = 0
        if direction in ("push", "both"):
            synced_stages, pushed = await self._push(client, base, actor.org_id)
            synced_leads += pushed
        if direction in ("pull", "both"):
            synced_leads += await self._pull(client, base, actor.org_id)

        self.store.increment_usage(actor.org_id, "operations", synced_stages + synced_leads)
        self.audit.record(
            org_id=actor.org_id,
            actor_id=actor.user_id,
            action="sync",
            entity="airtable",
            entity_id=base,
            metadata={
                "direction": direction,
                "syncedLeads": synced_leads,
                "syncedStages": synced_stages,
            },
        )
        logger.info(
            f"Airtable sync ({direction}) for {actor.org_id}: "
            f"{synced_stages} stage(s), {synced_leads} lead(s)"
        )
        return {
            "success": True,
            "synced_leads": synced_leads,
            "synced_stages": synced_stages,
            "direction": direction,
            "timestamp": datetime.utcnow(),
        }

    async def _push(self, client: AirtableClient, base_id: str, org_id: str) -> Tuple[int, int]:
        stages = self.store.list_all_stages(org_id)
        stage_names = {stage.id: stage.name for stage in stages}
        if stages:
            await client.upsert_records(
                base_id,
                STAGES_TABLE,
                [
                    {
                        "Stage ID": stage.id,
                        "Name": stage.name,
                        "Pipeline": stage.pipeline.name,
                        "Order": stage.order,
                    }
                    for stage in stages
                ],
                merge_on=["Stage ID"],
            )

        leads = self.store.list_all_leads(org_id)
        if leads:
            rows = []
            for lead in leads:
                row = {"Lead ID": lead.id, "Stage": stage_names.get(lead.stage_id)}
                for column, attribute in LEAD_FIELD_MAP.items():
                    row[column] = getattr(lead, attribute)
                rows.append(row)
            records = await client.upsert_records(base_id, LEADS_TABLE, rows, merge_on=["Lead ID"])
            for lead, record in zip(leads, records):
                if record.get("id") and lead.airtable_record_id != record["id"]:
                    self.store.link_lead_record(lead, record["id"])

        return len(stages), len(leads)

    async def _pull(self, client: AirtableClient, base_id: str, org_id: str) -> int:
        updated = 0
        for record in await client.list_records(base_id, LEADS_TABLE):
            fields = record.get("fields") or {}
            lead = self._match_lead(record, fields, org_id)
            if not lead:
                continue

            changes = {
                attribute: fields[column]
                for column, attribute in LEAD_FIELD_MAP.items()
                if column in fields and fields[column] != getattr(lead, attribute)
            }
            if record.get("id") and lead.airtable_record_id != record["id"]:
                changes["airtable_record_id"] = record["id"]
            if changes:
                self.store.update_lead(lead.id, org_id, changes)
                updated += 1
        return updated

    def _match_lead(self, record: Dict[str, Any], fields: Dict[str, Any], org_id: str) -> Optional[Lead]:
        if record.get("id"):
            lead = self.store.get_lead_by_record_id(record["id"], org_id)
            if lead:
                return lead
        if fields.get("Lead ID"):
            return self.store.get_lead(fields["Lead ID"], org_id)
        return None
