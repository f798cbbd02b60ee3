"""
Pricing service for resolving final tariff prices.

Combines the upstream supplier quote for a postal code with the funnel's
margin for the tariff type:

    final_working_price = upstream_working_price + margin_working_price
    final_base_price    = upstream_base_price    + margin_base_price

No clamping happens here; margins may be negative. A missing margin is a
fallback to zero (logged as a warning), not an error. The resolver has no
side effects; persisting the result is SnapshotStore's job.
"""

from __future__ import annotations

import logging

from domain.errors import PriceFeedUnavailableError
from domain.pricing import Margin, PriceQuote
from domain.tariff import TariffType
from repositories.margin_repository import MarginRepository
from services.price_feed import TariffPriceFeed

logger = logging.getLogger(__name__)


class PriceResolver:
    def __init__(self, feed: TariffPriceFeed, margins: MarginRepository) -> None:
        self._feed = feed
        self._margins = margins

    def resolve(self, funnel_id: str, tariff_type: TariffType, zip_code: str) -> PriceQuote:
        """
        Resolve the final price for a funnel, tariff type and postal code.

        Args:
            funnel_id: Sales funnel identifier (e.g. "enfinitus-website")
            tariff_type: STANDARD, GREEN or DYNAMIC
            zip_code: Delivery postal code

        Returns:
            PriceQuote with upstream, margin and final prices

        Raises:
            PriceFeedUnavailableError: upstream feed unreachable or it has
                no tariff for this postal code

        Example:
            quote = resolver.resolve("enfinitus-website", TariffType.STANDARD, "10115")
            # upstream 32.5 ct + margin 1.5 ct -> quote.final_working_price == Decimal('34.0')
        """

        upstream_quote = self._feed.fetch_quote(zip_code)
        try:
            upstream = upstream_quote.tariff_for(tariff_type)
        except LookupError as e:
            raise PriceFeedUnavailableError(str(e)) from e

        margin = self._margins.get(funnel_id, tariff_type)
        margin_found = margin is not None
        if margin is None:
            logger.warning(
                f"No margin for {funnel_id}/{tariff_type.value}; using zero margin",
                extra={"funnel_id": funnel_id, "tariff_type": tariff_type.value},
            )
            margin = Margin.zero(funnel_id, tariff_type)

        return PriceQuote(
            funnel_id=funnel_id,
            tariff_type=tariff_type,
            zip_code=zip_code,
            upstream_working_price=upstream.working_price_ct_kwh,
            upstream_base_price=upstream.base_price_eur_month,
            margin_working_price=margin.working_price_ct,
            margin_base_price=margin.base_price_eur,
            margin_found=margin_found,
        )


__all__ = ["PriceResolver"]
