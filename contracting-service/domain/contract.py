"""
Domain: contract drafts, market-location drafts and final contracts.

State machine implemented here:
- ContractDraft.verification_status: PENDING -> APPROVED | REJECTED (once).
- ContractDraft.status: DRAFT -> ACTIVE exactly once; ACTIVE is terminal.
- MarketLocationDraft.draft_status mirrors the verification outcome.
- Only a market-location draft in APPROVED may be activated.

Entities are frozen; transitions return new instances and raise on
illegal moves. Persistence applies the returned values.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from .errors import DraftAlreadyActiveError, DraftNotApprovedError, FieldNotEditableError
from .tariff import TariffType
from .time import require_utc_timestamp


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DraftStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"


class ChangeProcessStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"


CONTRACT_STATUS_ACTIVE = "active"

# Fields an operator may correct on a market-location draft.
EDITABLE_MALO_FIELDS: frozenset[str] = frozenset(
    {
        "market_location_id",
        "has_own_msb",
        "meter_number",
        "previous_provider_code",
        "previous_annual_consumption",
        "possible_supplier_change_date",
    }
)


@dataclass(frozen=True, slots=True)
class ContractDraft:
    """
    Working unit of the onboarding saga.

    `draft_id` identifies the row; `contract_id` is the human-correlatable
    string shared with the audit trail and, later, the final contract.
    """

    draft_id: UUID
    contract_id: str
    funnel_id: str
    customer_id: UUID
    campaign_id: UUID
    tariff_id: str
    tariff_type: TariffType
    working_price_ct_kwh: Decimal
    base_price_eur_month: Decimal
    expected_consumption_kwh: Optional[int]
    desired_start_date: Optional[date]
    iban: Optional[str]
    sepa_mandate: bool
    created_at: datetime
    voucher_id: Optional[UUID] = None
    snapshot_id: Optional[UUID] = None
    verification_status: VerificationStatus = VerificationStatus.PENDING
    status: DraftStatus = DraftStatus.DRAFT

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    @property
    def is_active(self) -> bool:
        return self.status is DraftStatus.ACTIVE

    def verified(self, approved: bool) -> "ContractDraft":
        if self.verification_status is not VerificationStatus.PENDING:
            raise ValueError(f"Draft {self.draft_id} was already verified ({self.verification_status.value})")
        outcome = VerificationStatus.APPROVED if approved else VerificationStatus.REJECTED
        return replace(self, verification_status=outcome)

    def activated(self) -> "ContractDraft":
        """Return the draft in its terminal ACTIVE state."""

        if self.is_active:
            raise DraftAlreadyActiveError(f"Contract draft {self.contract_id} is already active")
        return replace(self, status=DraftStatus.ACTIVE)


@dataclass(frozen=True, slots=True)
class MarketLocationDraft:
    """Supply-point data captured before the supplier switch is confirmed."""

    malo_draft_id: UUID
    draft_id: UUID
    customer_id: UUID
    market_location_id: Optional[str] = None
    has_own_msb: bool = False
    meter_number: Optional[str] = None
    previous_provider_code: Optional[str] = None
    previous_annual_consumption: Optional[int] = None
    possible_supplier_change_date: Optional[date] = None
    score_accepted: Optional[bool] = None
    draft_status: VerificationStatus = VerificationStatus.PENDING
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    def patched(self, fields: Mapping[str, Any]) -> "MarketLocationDraft":
        """
        Apply an operator patch. `draft_status` is never touched.

        Raises FieldNotEditableError for empty patches or fields outside
        EDITABLE_MALO_FIELDS.
        """

        if not fields:
            raise FieldNotEditableError("Patch contains no fields")
        rejected = sorted(set(fields) - EDITABLE_MALO_FIELDS)
        if rejected:
            raise FieldNotEditableError(f"Fields not editable: {', '.join(rejected)}", rejected)
        return replace(self, **dict(fields))

    def ensure_approved(self) -> None:
        if self.draft_status is not VerificationStatus.APPROVED:
            raise DraftNotApprovedError(
                f"Market location draft {self.malo_draft_id} is not approved "
                f"(status: {self.draft_status.value})"
            )


@dataclass(frozen=True, slots=True)
class Contract:
    """Final contract created on activation. Terminal and immutable."""

    contract_uuid: UUID
    contract_number: str
    draft_id: UUID
    customer_id: UUID
    funnel_id: str
    working_price_ct_kwh: Decimal
    base_price_eur_month: Decimal
    start_date: Optional[date]
    created_at: datetime
    snapshot_id: Optional[UUID] = None
    voucher_id: Optional[UUID] = None
    status: str = CONTRACT_STATUS_ACTIVE

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)


@dataclass(frozen=True, slots=True)
class FinalMarketLocation:
    """Customer market location handed over to the grid-operator switching process."""

    final_malo_id: UUID
    contract_uuid: UUID
    draft_id: UUID
    customer_id: UUID
    funnel_id: str
    market_location_id: Optional[str]
    has_own_msb: bool
    meter_number: Optional[str]
    previous_provider_code: Optional[str]
    previous_annual_consumption: Optional[int]
    possible_supplier_change_date: Optional[date]
    score_accepted: Optional[bool]
    created_at: datetime
    change_process_status: ChangeProcessStatus = ChangeProcessStatus.IN_PROGRESS

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)


__all__ = [
    "VerificationStatus",
    "DraftStatus",
    "ChangeProcessStatus",
    "CONTRACT_STATUS_ACTIVE",
    "EDITABLE_MALO_FIELDS",
    "ContractDraft",
    "MarketLocationDraft",
    "Contract",
    "FinalMarketLocation",
]
