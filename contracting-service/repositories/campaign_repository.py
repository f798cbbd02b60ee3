"""
Campaign repository (persistence).

Read access to published tariff campaigns. The onboarding core never writes
campaigns; they are provisioned elsewhere (or seeded for the in-process
store, see repositories/seed.py).
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.pricing import to_decimal
from domain.tariff import Campaign, TariffType
from repositories.client import StoreClient, execute

_CAMPAIGNS_TABLE: str = "campaigns"


def _row_to_campaign(row: Mapping[str, Any]) -> Campaign:
    return Campaign(
        campaign_id=UUID(str(row["campaign_id"])),
        campaign_key=str(row["campaign_key"]),
        name=str(row.get("name") or row["campaign_key"]),
        tariff_type=TariffType(str(row["tariff_type"])),
        energy_price_ct_kwh=to_decimal(row.get("energy_price_ct_kwh")),
        base_price_eur_month=to_decimal(row.get("base_price_eur_month")),
    )


class CampaignRepository:
    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def get_by_key(self, campaign_key: str) -> Optional[Campaign]:
        """
        Fetch a campaign by its key (e.g. "FIX12").

        Returns:
            Campaign or None if no campaign has this key
        """

        rows = execute(
            self._client.table(_CAMPAIGNS_TABLE).select("*").eq("campaign_key", campaign_key).limit(1),
            "fetch campaign",
        )
        return _row_to_campaign(rows[0]) if rows else None

    def list_all(self) -> List[Campaign]:
        rows = execute(
            self._client.table(_CAMPAIGNS_TABLE).select("*").order("campaign_key"),
            "list campaigns",
        )
        return [_row_to_campaign(row) for row in rows]


__all__ = ["CampaignRepository"]
