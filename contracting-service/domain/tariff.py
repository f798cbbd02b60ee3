"""
Domain: tariff types and published tariff campaigns.

Tariff ids arrive from the sales funnel as `<product>-<zip>` strings
(e.g. `standard-10115`, `green-80331`). The product prefix selects one of
three tariff types. Only the prefixes enumerated in `_PRODUCT_TO_TARIFF_TYPE`
are accepted; any other prefix is rejected instead of being defaulted.

Each tariff type has exactly one default campaign key, used when the
caller does not name a campaign explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .errors import TariffTypeUnresolvedError


class TariffType(str, Enum):
    STANDARD = "STANDARD"
    GREEN = "GREEN"
    DYNAMIC = "DYNAMIC"

    @property
    def feed_key(self) -> str:
        """Key of this tariff in the upstream price feed's `tariffs` object."""
        return self.value.lower()

    @property
    def default_campaign_key(self) -> str:
        return _DEFAULT_CAMPAIGN_KEYS[self]

    @staticmethod
    def for_tariff_id(tariff_id: Optional[str]) -> Optional["TariffType"]:
        """
        Resolve a TariffType from a funnel tariff id.

        Returns None if the product prefix is not one of the enumerated names.
        """

        if not tariff_id:
            return None
        product = tariff_id.strip().split("-", 1)[0].lower()
        return _PRODUCT_TO_TARIFF_TYPE.get(product)

    @staticmethod
    def from_tariff_id(tariff_id: Optional[str]) -> "TariffType":
        """
        Resolve a TariffType from a funnel tariff id.

        Raises TariffTypeUnresolvedError if the product prefix is unknown.
        """

        tariff_type = TariffType.for_tariff_id(tariff_id)
        if tariff_type is None:
            raise TariffTypeUnresolvedError(tariff_id or "")
        return tariff_type


_PRODUCT_TO_TARIFF_TYPE: dict[str, TariffType] = {
    "standard": TariffType.STANDARD,
    "fix12": TariffType.STANDARD,
    "green": TariffType.GREEN,
    "oeko": TariffType.GREEN,
    "dynamic": TariffType.DYNAMIC,
    "dynamisch": TariffType.DYNAMIC,
}

_DEFAULT_CAMPAIGN_KEYS: dict[TariffType, str] = {
    TariffType.STANDARD: "FIX12",
    TariffType.GREEN: "GREEN12",
    TariffType.DYNAMIC: "DYN",
}


@dataclass(frozen=True, slots=True)
class Campaign:
    """
    Published tariff template a contract draft is written against.

    Its prices are the baseline used when no upstream quote is available.
    """

    campaign_id: UUID
    campaign_key: str
    name: str
    tariff_type: TariffType
    energy_price_ct_kwh: Decimal
    base_price_eur_month: Decimal


__all__ = ["TariffType", "Campaign"]
