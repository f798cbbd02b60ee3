"""
Contract repository (persistence).

Final contracts (`contracts`) and final market locations (`customer_malo`)
are written once on activation. The only removal path is compensation of
a failed activation; a completed activation is never undone.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.contract import ChangeProcessStatus, Contract, FinalMarketLocation
from domain.pricing import to_decimal
from domain.time import parse_date, parse_utc_datetime, to_iso_utc
from repositories.client import StoreClient, execute

_CONTRACTS_TABLE: str = "contracts"
_FINAL_MALO_TABLE: str = "customer_malo"


def _row_to_contract(row: Mapping[str, Any]) -> Contract:
    return Contract(
        contract_uuid=UUID(str(row["contract_uuid"])),
        contract_number=str(row["contract_number"]),
        draft_id=UUID(str(row["draft_id"])),
        customer_id=UUID(str(row["customer_id"])),
        funnel_id=str(row["funnel_id"]),
        working_price_ct_kwh=to_decimal(row["working_price_ct_kwh"]),
        base_price_eur_month=to_decimal(row["base_price_eur_month"]),
        start_date=parse_date(row["start_date"]) if row.get("start_date") else None,
        created_at=parse_utc_datetime(row["created_at"]),
        snapshot_id=UUID(str(row["snapshot_id"])) if row.get("snapshot_id") else None,
        voucher_id=UUID(str(row["voucher_id"])) if row.get("voucher_id") else None,
        status=str(row.get("status") or "active"),
    )


def _row_to_final_malo(row: Mapping[str, Any]) -> FinalMarketLocation:
    return FinalMarketLocation(
        final_malo_id=UUID(str(row["final_malo_id"])),
        contract_uuid=UUID(str(row["contract_uuid"])),
        draft_id=UUID(str(row["draft_id"])),
        customer_id=UUID(str(row["customer_id"])),
        funnel_id=str(row["funnel_id"]),
        market_location_id=row.get("market_location_id"),
        has_own_msb=bool(row.get("has_own_msb", False)),
        meter_number=row.get("meter_number"),
        previous_provider_code=row.get("previous_provider_code"),
        previous_annual_consumption=row.get("previous_annual_consumption"),
        possible_supplier_change_date=(
            parse_date(row["possible_supplier_change_date"]) if row.get("possible_supplier_change_date") else None
        ),
        score_accepted=row.get("score_accepted"),
        created_at=parse_utc_datetime(row["created_at"]),
        change_process_status=ChangeProcessStatus(str(row.get("change_process_status") or "IN_PROGRESS")),
    )


class ContractRepository:
    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def create(self, contract: Contract) -> Contract:
        payload: dict[str, Any] = {
            "contract_uuid": str(contract.contract_uuid),
            "contract_number": contract.contract_number,
            "draft_id": str(contract.draft_id),
            "customer_id": str(contract.customer_id),
            "funnel_id": contract.funnel_id,
            "snapshot_id": str(contract.snapshot_id) if contract.snapshot_id else None,
            "voucher_id": str(contract.voucher_id) if contract.voucher_id else None,
            "working_price_ct_kwh": str(contract.working_price_ct_kwh),
            "base_price_eur_month": str(contract.base_price_eur_month),
            "start_date": contract.start_date.isoformat() if contract.start_date else None,
            "status": contract.status,
            "created_at": to_iso_utc(contract.created_at, name="created_at"),
        }
        execute(self._client.table(_CONTRACTS_TABLE).insert(payload), "create contract")
        return contract

    def get_by_draft(self, draft_id: UUID) -> List[Contract]:
        rows = execute(
            self._client.table(_CONTRACTS_TABLE).select("*").eq("draft_id", str(draft_id)),
            "fetch contracts for draft",
        )
        return [_row_to_contract(row) for row in rows]

    def get_by_number(self, contract_number: str) -> Optional[Contract]:
        rows = execute(
            self._client.table(_CONTRACTS_TABLE).select("*").eq("contract_number", contract_number).limit(1),
            "fetch contract",
        )
        return _row_to_contract(rows[0]) if rows else None

    def delete(self, contract_uuid: UUID) -> None:
        execute(
            self._client.table(_CONTRACTS_TABLE).delete().eq("contract_uuid", str(contract_uuid)),
            "delete contract",
        )

    def create_final_malo(self, final_malo: FinalMarketLocation) -> FinalMarketLocation:
        date_value = final_malo.possible_supplier_change_date
        payload: dict[str, Any] = {
            "final_malo_id": str(final_malo.final_malo_id),
            "contract_uuid": str(final_malo.contract_uuid),
            "draft_id": str(final_malo.draft_id),
            "customer_id": str(final_malo.customer_id),
            "funnel_id": final_malo.funnel_id,
            "market_location_id": final_malo.market_location_id,
            "has_own_msb": final_malo.has_own_msb,
            "meter_number": final_malo.meter_number,
            "previous_provider_code": final_malo.previous_provider_code,
            "previous_annual_consumption": final_malo.previous_annual_consumption,
            "possible_supplier_change_date": date_value.isoformat() if date_value else None,
            "score_accepted": final_malo.score_accepted,
            "change_process_status": final_malo.change_process_status.value,
            "created_at": to_iso_utc(final_malo.created_at, name="created_at"),
        }
        execute(self._client.table(_FINAL_MALO_TABLE).insert(payload), "create final market location")
        return final_malo

    def get_final_malo_for_contract(self, contract_uuid: UUID) -> Optional[FinalMarketLocation]:
        rows = execute(
            self._client.table(_FINAL_MALO_TABLE).select("*").eq("contract_uuid", str(contract_uuid)).limit(1),
            "fetch final market location",
        )
        return _row_to_final_malo(rows[0]) if rows else None

    def delete_final_malo(self, final_malo_id: UUID) -> None:
        execute(
            self._client.table(_FINAL_MALO_TABLE).delete().eq("final_malo_id", str(final_malo_id)),
            "delete final market location",
        )


__all__ = ["ContractRepository"]
