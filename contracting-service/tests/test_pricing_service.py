"""
Tests for `services/pricing_service.py` and `services/price_feed.py`.

Covers pricing rules:
- final = upstream + margin, for both working and base price.
- A missing margin falls back to zero and is flagged, not raised.
- Negative margins are applied as-is (no clamping).
- Dynamic tariffs use the current spot price as working price.
- A region without the requested tariff falls back to standard.
- Feed failures surface as PriceFeedUnavailableError.
- Snapshots keep the price they were captured with.
"""

from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from domain.errors import PriceFeedUnavailableError
from domain.tariff import TariffType
from services.price_feed import REFERENCE_PAYLOAD, HttpTariffPriceFeed, StaticTariffPriceFeed
from services.pricing_service import PriceResolver


def _resolver(stores, payload=None) -> PriceResolver:
    return PriceResolver(StaticTariffPriceFeed(payload), stores.margins)


def test_margin_is_added_to_upstream_price(stores) -> None:
    quote = _resolver(stores).resolve("enfinitus-website", TariffType.STANDARD, "10115")

    assert quote.upstream_working_price == Decimal("32.5")
    assert quote.final_working_price == Decimal("34.0")
    assert quote.final_base_price == Decimal("13.90")
    assert quote.margin_found


def test_missing_margin_uses_zero(stores) -> None:
    quote = _resolver(stores).resolve("unknown-funnel", TariffType.STANDARD, "10115")

    assert quote.final_working_price == Decimal("32.5")
    assert quote.final_base_price == Decimal("11.90")
    assert not quote.margin_found


def test_negative_margin_is_not_clamped(stores) -> None:
    stores.margins.upsert("discount-funnel", TariffType.STANDARD, Decimal("-2.0"), Decimal("-12.00"))

    quote = _resolver(stores).resolve("discount-funnel", TariffType.STANDARD, "10115")

    assert quote.final_working_price == Decimal("30.5")
    assert quote.final_base_price == Decimal("-0.10")


def test_dynamic_tariff_uses_current_price(stores) -> None:
    quote = _resolver(stores).resolve("enfinitus-website", TariffType.DYNAMIC, "10115")

    assert quote.upstream_working_price == Decimal("28.5")
    assert quote.upstream_base_price == Decimal("14.90")


def test_missing_tariff_falls_back_to_standard(stores) -> None:
    payload = {"tariffs": {"standard": REFERENCE_PAYLOAD["tariffs"]["standard"]}}

    quote = _resolver(stores, payload).resolve("viet-energie-website", TariffType.GREEN, "80331")

    assert quote.upstream_working_price == Decimal("32.5")
    assert not quote.margin_found


def test_quote_without_tariffs_is_unavailable(stores) -> None:
    with pytest.raises(PriceFeedUnavailableError):
        _resolver(stores, {"tariffs": {}}).resolve("enfinitus-website", TariffType.STANDARD, "10115")


def test_http_feed_parses_response() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["zip"] = request.url.params.get("zip")
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=REFERENCE_PAYLOAD)

    feed = HttpTariffPriceFeed(
        "https://prices.example.test/api/", api_key="secret", transport=httpx.MockTransport(handler)
    )

    quote = feed.fetch_quote("10115")

    assert seen == {"zip": "10115", "auth": "Bearer secret"}
    assert quote.region == "Berlin"
    assert quote.tariff_for(TariffType.GREEN).working_price_ct_kwh == Decimal("33.9")


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500, json={"error": "boom"}),
        lambda request: httpx.Response(200, content=b"not json"),
    ],
)
def test_http_feed_failure_is_unavailable(handler) -> None:
    feed = HttpTariffPriceFeed("https://prices.example.test", transport=httpx.MockTransport(handler))

    with pytest.raises(PriceFeedUnavailableError):
        feed.fetch_quote("10115")


def test_http_feed_transport_error_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    feed = HttpTariffPriceFeed("https://prices.example.test", transport=httpx.MockTransport(handler))

    with pytest.raises(PriceFeedUnavailableError):
        feed.fetch_quote("10115")


def test_snapshot_is_unaffected_by_later_margin_change(stores) -> None:
    """Verify a captured snapshot keeps its price after the margin changes."""

    quote = _resolver(stores).resolve("enfinitus-website", TariffType.STANDARD, "10115")
    snapshot_id = stores.snapshots.capture(quote)

    stores.margins.upsert("enfinitus-website", TariffType.STANDARD, Decimal("5.0"), Decimal("5.00"))
    snapshot = stores.snapshots.get(snapshot_id)

    assert snapshot.final_working_price == Decimal("34.0")
    assert snapshot.final_base_price == Decimal("13.90")
    assert snapshot.margin_working_price == Decimal("1.5")
