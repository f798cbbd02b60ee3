"""
Domain: price resolution values.

A final tariff price is the upstream supplier quote plus a funnel-specific
margin. Margins are additive and may be negative (promotional pricing); no
clamping happens at this layer. The resolved price is frozen into a
PriceSnapshot when a contract draft is created, as a record of upstream
price and margin at that moment. The draft itself is priced from its
campaign.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from .tariff import TariffType
from .time import require_utc_timestamp

ZERO = Decimal("0")

# ct/kWh are kept to four places, EUR/month to cents.
_WORKING_PRICE_PLACES = Decimal("0.0001")
_BASE_PRICE_PLACES = Decimal("0.01")


def round_working_price(value: Decimal) -> Decimal:
    return value.quantize(_WORKING_PRICE_PLACES, rounding=ROUND_HALF_UP)


def round_base_price(value: Decimal) -> Decimal:
    return value.quantize(_BASE_PRICE_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value: object) -> Decimal:
    """Convert a JSON/number column to Decimal without float artefacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True, slots=True)
class UpstreamTariff:
    """One tariff as quoted by the upstream supplier for a postal code."""

    name: str
    working_price_ct_kwh: Decimal
    base_price_eur_month: Decimal
    guarantee_months: Optional[int] = None


@dataclass(frozen=True, slots=True)
class UpstreamQuote:
    """Upstream price feed answer for one postal code."""

    zip_code: str
    region: Optional[str]
    grid_operator: Optional[str]
    tariffs: dict[str, UpstreamTariff]

    def tariff_for(self, tariff_type: TariffType) -> UpstreamTariff:
        """
        Pick the tariff for `tariff_type`, falling back to the standard tariff
        when the supplier does not offer the requested one for this region.
        """

        tariff = self.tariffs.get(tariff_type.feed_key) or self.tariffs.get(TariffType.STANDARD.feed_key)
        if tariff is None:
            raise LookupError(f"Upstream quote for {self.zip_code} has no {tariff_type.feed_key} tariff")
        return tariff


@dataclass(frozen=True, slots=True)
class Margin:
    """Additive adjustment for a (funnel_id, tariff_type) pair."""

    funnel_id: str
    tariff_type: TariffType
    working_price_ct: Decimal
    base_price_eur: Decimal
    updated_at: Optional[datetime] = None

    @staticmethod
    def zero(funnel_id: str, tariff_type: TariffType) -> "Margin":
        return Margin(funnel_id=funnel_id, tariff_type=tariff_type, working_price_ct=ZERO, base_price_eur=ZERO)


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """Resolved final price for a funnel, tariff type and postal code."""

    funnel_id: str
    tariff_type: TariffType
    zip_code: str
    upstream_working_price: Decimal
    upstream_base_price: Decimal
    margin_working_price: Decimal
    margin_base_price: Decimal
    margin_found: bool = True

    @property
    def final_working_price(self) -> Decimal:
        return self.upstream_working_price + self.margin_working_price

    @property
    def final_base_price(self) -> Decimal:
        return self.upstream_base_price + self.margin_base_price


@dataclass(frozen=True, slots=True)
class PriceSnapshot:
    """
    Immutable record of a resolved price at draft-creation time.

    Snapshots are written once and never updated.
    """

    snapshot_id: UUID
    funnel_id: str
    tariff_type: TariffType
    zip_code: str
    upstream_working_price: Decimal
    upstream_base_price: Decimal
    margin_working_price: Decimal
    margin_base_price: Decimal
    final_working_price: Decimal
    final_base_price: Decimal
    created_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)


__all__ = [
    "ZERO",
    "round_working_price",
    "round_base_price",
    "to_decimal",
    "UpstreamTariff",
    "UpstreamQuote",
    "Margin",
    "PriceQuote",
    "PriceSnapshot",
]
