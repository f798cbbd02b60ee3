"""
Margin repository for querying and maintaining funnel pricing margins.

Fetches the additive working/base price margin from the pricing_margins
table based on funnel id and tariff type. Margins are edited by operators;
already captured price snapshots are never touched by a margin change.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Mapping, Optional

from domain.pricing import Margin, to_decimal
from domain.tariff import TariffType
from domain.time import parse_utc_datetime, utc_now
from repositories.client import StoreClient, execute

_MARGINS_TABLE: str = "pricing_margins"


def _row_to_margin(row: Mapping[str, Any]) -> Margin:
    return Margin(
        funnel_id=str(row["funnel_id"]),
        tariff_type=TariffType(str(row["tariff_type"])),
        working_price_ct=to_decimal(row.get("working_price_ct")),
        base_price_eur=to_decimal(row.get("base_price_eur")),
        updated_at=parse_utc_datetime(row["updated_at"]) if row.get("updated_at") else None,
    )


class MarginRepository:
    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def get(self, funnel_id: str, tariff_type: TariffType) -> Optional[Margin]:
        """
        Get the margin for a funnel + tariff type combination.

        Args:
            funnel_id: Sales funnel identifier (e.g. "enfinitus-website")
            tariff_type: Tariff type the margin applies to

        Returns:
            Margin or None if no margin row exists

        Example:
            margin = repo.get("enfinitus-website", TariffType.STANDARD)
            # Margin(working_price_ct=Decimal('1.5'), base_price_eur=Decimal('2.0'), ...)
        """

        rows = execute(
            self._client.table(_MARGINS_TABLE)
            .select("*")
            .eq("funnel_id", funnel_id)
            .eq("tariff_type", tariff_type.value)
            .limit(1),
            "fetch margin",
        )
        return _row_to_margin(rows[0]) if rows else None

    def list_all(self) -> List[Margin]:
        rows = execute(
            self._client.table(_MARGINS_TABLE).select("*").order("funnel_id").order("tariff_type"),
            "list margins",
        )
        return [_row_to_margin(row) for row in rows]

    def upsert(
        self,
        funnel_id: str,
        tariff_type: TariffType,
        working_price_ct: Decimal,
        base_price_eur: Decimal,
    ) -> Margin:
        """Create or replace the margin for (funnel_id, tariff_type)."""

        payload: dict[str, Any] = {
            "funnel_id": funnel_id,
            "tariff_type": tariff_type.value,
            "working_price_ct": str(working_price_ct),
            "base_price_eur": str(base_price_eur),
            "updated_at": utc_now().isoformat(),
        }
        rows = execute(
            self._client.table(_MARGINS_TABLE).upsert(payload, on_conflict="funnel_id,tariff_type"),
            "save margin",
        )
        return _row_to_margin(rows[0] if rows else payload)


__all__ = ["MarginRepository"]
