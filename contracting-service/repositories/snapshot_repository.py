"""
Price snapshot store (persistence).

Insert-only. A snapshot freezes the upstream price, the margin and the
resulting final price at the moment a contract draft is created, so later
margin edits never change what a customer signed. There is no update or
delete operation here.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

from domain.pricing import PriceQuote, PriceSnapshot, to_decimal
from domain.tariff import TariffType
from domain.time import parse_utc_datetime, utc_now
from repositories.client import StoreClient, execute

_SNAPSHOTS_TABLE: str = "tariff_price_snapshots"


def _row_to_snapshot(row: Mapping[str, Any]) -> PriceSnapshot:
    return PriceSnapshot(
        snapshot_id=UUID(str(row["snapshot_id"])),
        funnel_id=str(row["funnel_id"]),
        tariff_type=TariffType(str(row["tariff_type"])),
        zip_code=str(row["zip_code"]),
        upstream_working_price=to_decimal(row["upstream_working_price"]),
        upstream_base_price=to_decimal(row["upstream_base_price"]),
        margin_working_price=to_decimal(row["margin_working_price"]),
        margin_base_price=to_decimal(row["margin_base_price"]),
        final_working_price=to_decimal(row["final_working_price"]),
        final_base_price=to_decimal(row["final_base_price"]),
        created_at=parse_utc_datetime(row["created_at"]),
    )


class SnapshotStore:
    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def capture(self, quote: PriceQuote) -> UUID:
        """
        Persist `quote` as a new immutable snapshot.

        Returns:
            The new snapshot_id
        """

        snapshot_id = uuid4()
        payload: dict[str, Any] = {
            "snapshot_id": str(snapshot_id),
            "funnel_id": quote.funnel_id,
            "tariff_type": quote.tariff_type.value,
            "zip_code": quote.zip_code,
            "upstream_working_price": str(quote.upstream_working_price),
            "upstream_base_price": str(quote.upstream_base_price),
            "margin_working_price": str(quote.margin_working_price),
            "margin_base_price": str(quote.margin_base_price),
            "final_working_price": str(quote.final_working_price),
            "final_base_price": str(quote.final_base_price),
            "created_at": utc_now().isoformat(),
        }
        execute(self._client.table(_SNAPSHOTS_TABLE).insert(payload), "capture price snapshot")
        return snapshot_id

    def get(self, snapshot_id: UUID) -> Optional[PriceSnapshot]:
        rows = execute(
            self._client.table(_SNAPSHOTS_TABLE).select("*").eq("snapshot_id", str(snapshot_id)).limit(1),
            "fetch price snapshot",
        )
        return _row_to_snapshot(rows[0]) if rows else None


__all__ = ["SnapshotStore"]
