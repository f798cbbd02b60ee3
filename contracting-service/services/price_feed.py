"""
Upstream tariff price feeds.

A feed answers one question: what does the upstream supplier charge for
each tariff at a postal code. Two implementations:

- StaticTariffPriceFeed: fixed reference quotes, used when PRICE_FEED_URL
  is not configured (local development, tests, mock mode)
- HttpTariffPriceFeed: GET {PRICE_FEED_URL}/pricing?zip=<zip> with a bearer
  token; any transport failure, timeout or non-2xx answer is raised as
  PriceFeedUnavailableError

Both return an UpstreamQuote. Payload shape:

    {"region": "Berlin", "grid_operator": "...",
     "tariffs": {"standard": {"name": ..., "energy_price_ct_kwh": 32.5,
                              "base_price_eur_month": 11.9, "guarantee_months": 12},
                 "dynamic": {"current_price_ct_kwh": 28.5, ...}}}

Dynamic tariffs quote `current_price_ct_kwh` instead of
`energy_price_ct_kwh`; that value is used as the working price.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx

from domain.errors import PriceFeedUnavailableError
from domain.pricing import UpstreamQuote, UpstreamTariff, to_decimal

logger = logging.getLogger(__name__)


class TariffPriceFeed(Protocol):
    def fetch_quote(self, zip_code: str) -> UpstreamQuote: ...


REFERENCE_PAYLOAD: Dict[str, Any] = {
    "region": "Berlin",
    "grid_operator": "Stromnetz Berlin GmbH",
    "tariffs": {
        "standard": {
            "name": "Basic",
            "energy_price_ct_kwh": "32.5",
            "base_price_eur_month": "11.90",
            "guarantee_months": 12,
        },
        "green": {
            "name": "Green",
            "energy_price_ct_kwh": "33.9",
            "base_price_eur_month": "12.90",
            "guarantee_months": 12,
        },
        "dynamic": {
            "name": "Smart Dynamic",
            "current_price_ct_kwh": "28.5",
            "base_price_eur_month": "14.90",
        },
    },
}


def parse_quote(zip_code: str, payload: Mapping[str, Any]) -> UpstreamQuote:
    """
    Convert a feed payload into an UpstreamQuote.

    Tariffs without any working price are skipped.
    """

    tariffs: Dict[str, UpstreamTariff] = {}
    for key, raw in (payload.get("tariffs") or {}).items():
        working = raw.get("energy_price_ct_kwh")
        if working is None:
            working = raw.get("current_price_ct_kwh")
        if working is None:
            logger.warning(f"Upstream tariff {key!r} for {zip_code} has no working price; skipped")
            continue
        tariffs[str(key).lower()] = UpstreamTariff(
            name=str(raw.get("name") or key),
            working_price_ct_kwh=to_decimal(working),
            base_price_eur_month=to_decimal(raw.get("base_price_eur_month")),
            guarantee_months=raw.get("guarantee_months"),
        )

    return UpstreamQuote(
        zip_code=zip_code,
        region=payload.get("region"),
        grid_operator=payload.get("grid_operator"),
        tariffs=tariffs,
    )


class StaticTariffPriceFeed:
    """Returns the same reference quote for every postal code."""

    def __init__(self, payload: Optional[Mapping[str, Any]] = None) -> None:
        self._payload = payload or REFERENCE_PAYLOAD

    def fetch_quote(self, zip_code: str) -> UpstreamQuote:
        logger.info(f"Using reference upstream pricing for {zip_code}")
        return parse_quote(zip_code, self._payload)


class HttpTariffPriceFeed:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def fetch_quote(self, zip_code: str) -> UpstreamQuote:
        headers: Dict[str, str] = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        url = f"{self.base_url}/pricing"
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = client.get(url, params={"zip": zip_code}, headers=headers)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Upstream price feed failed for {zip_code}: {e}")
            raise PriceFeedUnavailableError(f"Failed to fetch upstream pricing for {zip_code}") from e

        return parse_quote(zip_code, data)


__all__ = [
    "TariffPriceFeed",
    "StaticTariffPriceFeed",
    "HttpTariffPriceFeed",
    "REFERENCE_PAYLOAD",
    "parse_quote",
]
