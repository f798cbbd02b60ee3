"""
Voucher repository (persistence).

Vouchers live in the `marketing_campaigns` table. A voucher row is never
updated once a contract draft references it.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, List, Mapping, Optional
from uuid import UUID, uuid4

from domain.pricing import to_decimal
from domain.time import parse_date, parse_utc_datetime, utc_now
from domain.voucher import DiscountType, Voucher
from repositories.client import StoreClient, execute

_VOUCHERS_TABLE: str = "marketing_campaigns"


def _row_to_voucher(row: Mapping[str, Any]) -> Voucher:
    return Voucher(
        voucher_id=UUID(str(row["voucher_id"])),
        campaign_code=str(row["campaign_code"]),
        voucher_code=str(row["voucher_code"]),
        start_date=parse_date(row["start_date"]),
        end_date=parse_date(row["end_date"]),
        discount_type=DiscountType(str(row.get("discount_type") or DiscountType.FIXED.value)),
        discount_working_price_ct=to_decimal(row.get("discount_working_price_ct")),
        discount_base_price_eur=to_decimal(row.get("discount_base_price_eur")),
        discount_percent=to_decimal(row.get("discount_percent")),
        funnel_id=row.get("funnel_id") or None,
        is_active=bool(row.get("is_active", True)),
        created_at=parse_utc_datetime(row["created_at"]) if row.get("created_at") else None,
    )


class VoucherRepository:
    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def find_by_code(self, voucher_code: str) -> Optional[Voucher]:
        """
        Fetch a voucher by code, preferring an active row when several
        campaigns reused the same code.
        """

        rows = execute(
            self._client.table(_VOUCHERS_TABLE).select("*").eq("voucher_code", voucher_code.strip().upper()),
            "look up voucher",
        )
        if not rows:
            return None
        rows.sort(key=lambda row: not bool(row.get("is_active", True)))
        return _row_to_voucher(rows[0])

    def list_all(self) -> List[Voucher]:
        rows = execute(
            self._client.table(_VOUCHERS_TABLE).select("*").order("created_at", desc=True),
            "list marketing campaigns",
        )
        return [_row_to_voucher(row) for row in rows]

    def create(
        self,
        *,
        campaign_code: str,
        voucher_code: str,
        start_date: date,
        end_date: date,
        discount_type: DiscountType = DiscountType.FIXED,
        discount_working_price_ct: Decimal = Decimal("0"),
        discount_base_price_eur: Decimal = Decimal("0"),
        discount_percent: Decimal = Decimal("0"),
        funnel_id: Optional[str] = None,
        is_active: bool = True,
    ) -> Voucher:
        voucher_id = uuid4()
        payload: dict[str, Any] = {
            "voucher_id": str(voucher_id),
            "campaign_code": campaign_code,
            "voucher_code": voucher_code.strip().upper(),
            "funnel_id": funnel_id,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "is_active": is_active,
            "discount_type": discount_type.value,
            "discount_working_price_ct": str(discount_working_price_ct),
            "discount_base_price_eur": str(discount_base_price_eur),
            "discount_percent": str(discount_percent),
            "created_at": utc_now().isoformat(),
        }
        execute(self._client.table(_VOUCHERS_TABLE).insert(payload), "create marketing campaign")
        return _row_to_voucher(payload)


__all__ = ["VoucherRepository"]
