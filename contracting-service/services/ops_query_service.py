"""
Read and maintenance surface for the operations console.

Thin wrappers over the repositories: listings, contract history, voucher
creation and margin maintenance. No state machine logic lives here.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from domain.contract import ContractDraft, MarketLocationDraft
from domain.errors import DraftNotFoundError, ValidationError
from domain.events import ContractEvent
from domain.pricing import Margin
from domain.tariff import Campaign, TariffType
from domain.voucher import DiscountType, Voucher
from repositories.stores import Stores
from services.audit_log import AuditLog

logger = logging.getLogger(__name__)

_CODE_CHARS = re.compile(r"[^A-Z0-9]")


def marketing_campaign_code(voucher_code: str, year: int) -> str:
    """`CAMP-<CODE>-<year>`, e.g. CAMP-WELCOME10-2026."""

    code = _CODE_CHARS.sub("", voucher_code.upper())
    return f"CAMP-{code}-{year}"


class OpsQueryService:
    def __init__(self, stores: Stores) -> None:
        self._stores = stores
        self._audit = AuditLog(stores.events)

    def list_campaigns(self) -> List[Campaign]:
        return self._stores.campaigns.list_all()

    def list_marketing_campaigns(self) -> List[Voucher]:
        return self._stores.vouchers.list_all()

    def create_marketing_campaign(
        self,
        *,
        voucher_code: str,
        start_date: date,
        end_date: date,
        discount_type: DiscountType = DiscountType.FIXED,
        discount_working_price_ct: Decimal = Decimal("0"),
        discount_base_price_eur: Decimal = Decimal("0"),
        discount_percent: Decimal = Decimal("0"),
        funnel_id: Optional[str] = None,
    ) -> Voucher:
        """
        Create a voucher with a generated campaign code.

        Raises:
            ValidationError: empty code, inverted validity window or
                negative discount
        """

        if not voucher_code.strip():
            raise ValidationError("Voucher code must not be empty")
        if end_date < start_date:
            raise ValidationError("Voucher end_date must not be before start_date")
        if min(discount_working_price_ct, discount_base_price_eur, discount_percent) < 0:
            raise ValidationError("Voucher discounts must not be negative")
        if discount_type is DiscountType.PERCENTAGE and discount_percent > 100:
            raise ValidationError("Voucher discount_percent must be between 0 and 100")

        voucher = self._stores.vouchers.create(
            campaign_code=marketing_campaign_code(voucher_code, start_date.year),
            voucher_code=voucher_code,
            start_date=start_date,
            end_date=end_date,
            discount_type=discount_type,
            discount_working_price_ct=discount_working_price_ct,
            discount_base_price_eur=discount_base_price_eur,
            discount_percent=discount_percent,
            funnel_id=funnel_id or None,
        )
        logger.info(f"Created marketing campaign {voucher.campaign_code} ({voucher.voucher_code})")
        return voucher

    def list_contract_drafts(self, customer_id: Optional[UUID] = None) -> List[ContractDraft]:
        return self._stores.drafts.list_drafts(customer_id)

    def get_malo_drafts(self, contract_id: str) -> List[MarketLocationDraft]:
        """
        Market-location drafts for a contract correlation id.

        Raises:
            DraftNotFoundError: no contract draft with this id
        """

        draft = self._stores.drafts.get_by_contract_id(contract_id)
        if draft is None:
            raise DraftNotFoundError(f"Contract draft not found: {contract_id}")
        return self._stores.drafts.list_malo_for_draft(draft.draft_id)

    def contract_history(self, contract_id: str) -> List[ContractEvent]:
        return self._audit.history(contract_id)

    def list_margins(self) -> List[Margin]:
        return self._stores.margins.list_all()

    def upsert_margin(
        self,
        funnel_id: str,
        tariff_type: TariffType,
        working_price_ct: Decimal,
        base_price_eur: Decimal,
    ) -> Margin:
        if not funnel_id.strip():
            raise ValidationError("funnel_id must not be empty")
        margin = self._stores.margins.upsert(funnel_id, tariff_type, working_price_ct, base_price_eur)
        logger.info(
            f"Margin for {funnel_id}/{tariff_type.value} set to {working_price_ct} ct / {base_price_eur} EUR"
        )
        return margin


__all__ = ["OpsQueryService", "marketing_campaign_code"]
