"""
Domain: vouchers (marketing campaigns).

Rules implemented here:
- A voucher applies only while `start_date <= today <= end_date` (both inclusive)
  and only if it is flagged active.
- A voucher bound to a funnel applies only to imports from that funnel;
  an unbound voucher applies to every funnel.
- Discounts are subtracted from the working price (ct/kWh) and the base
  price (EUR/month) separately, and each result is clamped at zero.

FIXED vouchers subtract absolute amounts. PERCENTAGE vouchers take the
same share off both prices.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .errors import VoucherNotApplicableError
from .pricing import ZERO, round_base_price, round_working_price

_HUNDRED = Decimal("100")


class DiscountType(str, Enum):
    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"


@dataclass(frozen=True, slots=True)
class DiscountedPrice:
    working_price_ct_kwh: Decimal
    base_price_eur_month: Decimal


@dataclass(frozen=True, slots=True)
class Voucher:
    """
    Discount rule redeemable by voucher code.

    Immutable once matched to a contract draft; the draft keeps a reference
    to `voucher_id`.
    """

    voucher_id: UUID
    campaign_code: str
    voucher_code: str
    start_date: date
    end_date: date
    discount_type: DiscountType = DiscountType.FIXED
    discount_working_price_ct: Decimal = ZERO
    discount_base_price_eur: Decimal = ZERO
    discount_percent: Decimal = ZERO
    funnel_id: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.discount_type is DiscountType.PERCENTAGE and not (ZERO <= self.discount_percent <= _HUNDRED):
            raise ValueError("discount_percent must be between 0 and 100")

    def is_valid_on(self, day: date) -> bool:
        return self.is_active and self.start_date <= day <= self.end_date

    def applies_to_funnel(self, funnel_id: str) -> bool:
        return not self.funnel_id or self.funnel_id == funnel_id

    def ensure_applicable(self, funnel_id: str, today: date) -> None:
        """
        Raise VoucherNotApplicableError unless this voucher can be redeemed
        by `funnel_id` on `today`.
        """

        if not self.is_active:
            raise VoucherNotApplicableError(
                self.voucher_code, "VOUCHER_NOT_FOUND", f"Voucher {self.voucher_code} is not active"
            )
        if today < self.start_date:
            raise VoucherNotApplicableError(
                self.voucher_code,
                "VOUCHER_NOT_YET_VALID",
                f"Voucher {self.voucher_code} is valid from {self.start_date.isoformat()}",
            )
        if today > self.end_date:
            raise VoucherNotApplicableError(
                self.voucher_code,
                "VOUCHER_EXPIRED",
                f"Voucher {self.voucher_code} expired on {self.end_date.isoformat()}",
            )
        if not self.applies_to_funnel(funnel_id):
            raise VoucherNotApplicableError(
                self.voucher_code,
                "VOUCHER_FUNNEL_MISMATCH",
                f"Voucher {self.voucher_code} not valid for funnel {funnel_id}",
            )

    def apply(self, working_price_ct_kwh: Decimal, base_price_eur_month: Decimal) -> DiscountedPrice:
        """Return the discounted prices, each floored at zero."""

        if self.discount_type is DiscountType.PERCENTAGE:
            share = self.discount_percent / _HUNDRED
            working = working_price_ct_kwh - working_price_ct_kwh * share
            base = base_price_eur_month - base_price_eur_month * share
        else:
            working = working_price_ct_kwh - self.discount_working_price_ct
            base = base_price_eur_month - self.discount_base_price_eur

        return DiscountedPrice(
            working_price_ct_kwh=round_working_price(max(ZERO, working)),
            base_price_eur_month=round_base_price(max(ZERO, base)),
        )


__all__ = ["DiscountType", "DiscountedPrice", "Voucher"]
