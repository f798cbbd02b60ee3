"""
Contract draft repository (persistence).

Persistence for ContractDraft rows (`contract_drafts`) and their
MarketLocationDraft children (`malo_drafts`). State machine rules live in
domain/contract.py; this module only enforces the two conditional updates
that must be atomic in the store itself:

- verification outcome is written only while the draft is still PENDING
- activation claims the draft only while it is still DRAFT

Both are single UPDATE ... WHERE statements, so of two concurrent callers
exactly one sees the row come back.

Market-location writes touch only their own columns: operator patches
update the patched fields, verification updates draft_status and
score_accepted.
"""

from __future__ import annotations

from datetime import date
from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.contract import ContractDraft, DraftStatus, MarketLocationDraft, VerificationStatus
from domain.pricing import to_decimal
from domain.tariff import TariffType
from domain.time import parse_date, parse_utc_datetime, to_iso_utc, utc_now
from repositories.client import StoreClient, execute

_DRAFTS_TABLE: str = "contract_drafts"
_MALO_DRAFTS_TABLE: str = "malo_drafts"


def _optional_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


def _optional_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _row_to_draft(row: Mapping[str, Any]) -> ContractDraft:
    return ContractDraft(
        draft_id=UUID(str(row["draft_id"])),
        contract_id=str(row["contract_id"]),
        funnel_id=str(row["funnel_id"]),
        customer_id=UUID(str(row["customer_id"])),
        campaign_id=UUID(str(row["campaign_id"])),
        tariff_id=str(row["tariff_id"]),
        tariff_type=TariffType(str(row["tariff_type"])),
        working_price_ct_kwh=to_decimal(row["working_price_ct_kwh"]),
        base_price_eur_month=to_decimal(row["base_price_eur_month"]),
        expected_consumption_kwh=row.get("expected_consumption_kwh"),
        desired_start_date=parse_date(row["desired_start_date"]) if row.get("desired_start_date") else None,
        iban=row.get("iban"),
        sepa_mandate=bool(row.get("sepa_mandate", False)),
        created_at=parse_utc_datetime(row["created_at"]),
        voucher_id=_optional_uuid(row.get("voucher_id")),
        snapshot_id=_optional_uuid(row.get("snapshot_id")),
        verification_status=VerificationStatus(str(row.get("verification_status") or "PENDING")),
        status=DraftStatus(str(row.get("status") or "DRAFT")),
    )


def _row_to_malo_draft(row: Mapping[str, Any]) -> MarketLocationDraft:
    return MarketLocationDraft(
        malo_draft_id=UUID(str(row["malo_draft_id"])),
        draft_id=UUID(str(row["draft_id"])),
        customer_id=UUID(str(row["customer_id"])),
        market_location_id=row.get("market_location_id"),
        has_own_msb=bool(row.get("has_own_msb", False)),
        meter_number=row.get("meter_number"),
        previous_provider_code=row.get("previous_provider_code"),
        previous_annual_consumption=row.get("previous_annual_consumption"),
        possible_supplier_change_date=(
            parse_date(row["possible_supplier_change_date"]) if row.get("possible_supplier_change_date") else None
        ),
        score_accepted=row.get("score_accepted"),
        draft_status=VerificationStatus(str(row.get("draft_status") or "PENDING")),
        updated_at=parse_utc_datetime(row["updated_at"]) if row.get("updated_at") else None,
    )


def _malo_payload(malo: MarketLocationDraft) -> dict[str, Any]:
    return {
        "market_location_id": malo.market_location_id,
        "has_own_msb": malo.has_own_msb,
        "meter_number": malo.meter_number,
        "previous_provider_code": malo.previous_provider_code,
        "previous_annual_consumption": malo.previous_annual_consumption,
        "possible_supplier_change_date": _optional_date(malo.possible_supplier_change_date),
        "score_accepted": malo.score_accepted,
        "draft_status": malo.draft_status.value,
    }


class ContractDraftRepository:
    def __init__(self, client: StoreClient) -> None:
        self._client = client

    # ------------------------------------------------------------------ #
    # Contract drafts
    # ------------------------------------------------------------------ #
    def create(self, draft: ContractDraft) -> ContractDraft:
        """
        Insert a new contract draft.

        Returns:
            The draft as given (the store adds nothing)
        """

        payload: dict[str, Any] = {
            "draft_id": str(draft.draft_id),
            "contract_id": draft.contract_id,
            "funnel_id": draft.funnel_id,
            "customer_id": str(draft.customer_id),
            "campaign_id": str(draft.campaign_id),
            "tariff_id": draft.tariff_id,
            "tariff_type": draft.tariff_type.value,
            "voucher_id": str(draft.voucher_id) if draft.voucher_id else None,
            "snapshot_id": str(draft.snapshot_id) if draft.snapshot_id else None,
            "working_price_ct_kwh": str(draft.working_price_ct_kwh),
            "base_price_eur_month": str(draft.base_price_eur_month),
            "expected_consumption_kwh": draft.expected_consumption_kwh,
            "desired_start_date": _optional_date(draft.desired_start_date),
            "iban": draft.iban,
            "sepa_mandate": draft.sepa_mandate,
            "verification_status": draft.verification_status.value,
            "status": draft.status.value,
            "created_at": to_iso_utc(draft.created_at, name="created_at"),
        }
        execute(self._client.table(_DRAFTS_TABLE).insert(payload), "create contract draft")
        return draft

    def get(self, draft_id: UUID) -> Optional[ContractDraft]:
        rows = execute(
            self._client.table(_DRAFTS_TABLE).select("*").eq("draft_id", str(draft_id)).limit(1),
            "fetch contract draft",
        )
        return _row_to_draft(rows[0]) if rows else None

    def get_by_contract_id(self, contract_id: str) -> Optional[ContractDraft]:
        rows = execute(
            self._client.table(_DRAFTS_TABLE).select("*").eq("contract_id", contract_id).limit(1),
            "fetch contract draft",
        )
        return _row_to_draft(rows[0]) if rows else None

    def list_drafts(self, customer_id: Optional[UUID] = None) -> List[ContractDraft]:
        """List drafts, newest first, optionally for a single customer."""

        query = self._client.table(_DRAFTS_TABLE).select("*")
        if customer_id is not None:
            query = query.eq("customer_id", str(customer_id))
        rows = execute(query.order("created_at", desc=True), "list contract drafts")
        return [_row_to_draft(row) for row in rows]

    def delete(self, draft_id: UUID) -> None:
        execute(
            self._client.table(_DRAFTS_TABLE).delete().eq("draft_id", str(draft_id)),
            "delete contract draft",
        )

    def record_verification(self, draft_id: UUID, outcome: VerificationStatus) -> bool:
        """
        Write the verification outcome if the draft is still PENDING.

        Returns:
            True if this call performed the transition
        """

        rows = execute(
            self._client.table(_DRAFTS_TABLE)
            .update({"verification_status": outcome.value})
            .eq("draft_id", str(draft_id))
            .eq("verification_status", VerificationStatus.PENDING.value),
            "record verification outcome",
        )
        return bool(rows)

    def claim_activation(self, draft_id: UUID) -> bool:
        """
        Conditionally move the draft DRAFT -> ACTIVE.

        Returns:
            True if this caller won the claim, False if the draft was
            already ACTIVE (or no longer exists)
        """

        rows = execute(
            self._client.table(_DRAFTS_TABLE)
            .update({"status": DraftStatus.ACTIVE.value})
            .eq("draft_id", str(draft_id))
            .eq("status", DraftStatus.DRAFT.value),
            "claim contract draft for activation",
        )
        return bool(rows)

    def release_activation(self, draft_id: UUID) -> None:
        """Revert a claim made by claim_activation (compensation only)."""

        execute(
            self._client.table(_DRAFTS_TABLE)
            .update({"status": DraftStatus.DRAFT.value})
            .eq("draft_id", str(draft_id))
            .eq("status", DraftStatus.ACTIVE.value),
            "release contract draft claim",
        )

    # ------------------------------------------------------------------ #
    # Market-location drafts
    # ------------------------------------------------------------------ #
    def create_malo(self, malo: MarketLocationDraft) -> MarketLocationDraft:
        now = utc_now()
        payload: dict[str, Any] = {
            "malo_draft_id": str(malo.malo_draft_id),
            "draft_id": str(malo.draft_id),
            "customer_id": str(malo.customer_id),
            **_malo_payload(malo),
            "updated_at": now.isoformat(),
        }
        execute(self._client.table(_MALO_DRAFTS_TABLE).insert(payload), "create market location draft")
        return _row_to_malo_draft(payload)

    def get_malo(self, malo_draft_id: UUID) -> Optional[MarketLocationDraft]:
        rows = execute(
            self._client.table(_MALO_DRAFTS_TABLE).select("*").eq("malo_draft_id", str(malo_draft_id)).limit(1),
            "fetch market location draft",
        )
        return _row_to_malo_draft(rows[0]) if rows else None

    def list_malo_for_draft(self, draft_id: UUID) -> List[MarketLocationDraft]:
        rows = execute(
            self._client.table(_MALO_DRAFTS_TABLE).select("*").eq("draft_id", str(draft_id)).order("updated_at"),
            "list market location drafts",
        )
        return [_row_to_malo_draft(row) for row in rows]

    def get_malo_for_draft(self, draft_id: UUID) -> Optional[MarketLocationDraft]:
        drafts = self.list_malo_for_draft(draft_id)
        return drafts[0] if drafts else None

    def update_malo_fields(self, malo_draft_id: UUID, fields: Mapping[str, Any]) -> Optional[MarketLocationDraft]:
        """
        Write only the given columns of a market-location draft.

        Columns that are not in `fields` (the verification outcome in
        particular) keep whatever the store holds at write time.

        Returns:
            The updated draft, or None if it no longer exists
        """

        payload: dict[str, Any] = {
            name: value.isoformat() if isinstance(value, date) else value for name, value in fields.items()
        }
        payload["updated_at"] = utc_now().isoformat()
        rows = execute(
            self._client.table(_MALO_DRAFTS_TABLE).update(payload).eq("malo_draft_id", str(malo_draft_id)),
            "update market location draft",
        )
        return _row_to_malo_draft(rows[0]) if rows else None

    def record_malo_outcome(self, draft_id: UUID, outcome: VerificationStatus, score_accepted: bool) -> bool:
        """
        Write the verification outcome to the draft's market-location rows.

        Returns:
            True if at least one row was updated
        """

        rows = execute(
            self._client.table(_MALO_DRAFTS_TABLE)
            .update(
                {
                    "draft_status": outcome.value,
                    "score_accepted": score_accepted,
                    "updated_at": utc_now().isoformat(),
                }
            )
            .eq("draft_id", str(draft_id)),
            "record market location outcome",
        )
        return bool(rows)

    def delete_malo_for_draft(self, draft_id: UUID) -> None:
        execute(
            self._client.table(_MALO_DRAFTS_TABLE).delete().eq("draft_id", str(draft_id)),
            "delete market location drafts",
        )


__all__ = ["ContractDraftRepository"]
