"""
Tests for `services/onboarding_service.py`.

Covers import rules:
- A successful import writes one ContractDraft (PENDING / DRAFT), one
  MarketLocationDraft and one DRAFT_CREATED event.
- Campaign defaults by tariff type; unknown campaigns and tariff ids are
  rejected, never defaulted.
- Drafts are priced from the campaign minus the voucher discount, clamped
  at zero; the snapshot only records upstream price plus funnel margin.
- Vouchers soft-fail: the import continues at full price.
- Feed failures leave the draft without a snapshot.
- A failed market-location draft leaves no orphaned contract draft; a
  store outage at that step is compensated, not retried in the fallback.
- Unreachable primary store: fallback import (degraded, unverified) when
  allowed, StoreUnavailableError otherwise.
- Interrupted imports are found and compensated by recovery.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from conftest import ImmediateExecutor, UnreachableClient, make_request, make_settings
from domain.contract import DraftStatus, VerificationStatus
from domain.errors import (
    CampaignNotFoundError,
    MarketLocationDraftError,
    PersistenceError,
    PriceFeedUnavailableError,
    StoreUnavailableError,
    TariffTypeUnresolvedError,
)
from domain.events import ContractEventType
from domain.saga import SagaStepName
from domain.tariff import TariffType
from domain.time import utc_now
from domain.voucher import DiscountType
from repositories.memory_client import InMemoryClient
from repositories.stores import Stores
from services.factory import build_services
from services.onboarding_service import MOCK_PREFIX, OnboardingPipeline, zip_code_for
from services.price_feed import StaticTariffPriceFeed


class TickingClock:
    """UTC clock that advances one millisecond per call, so contract ids never collide."""

    def __init__(self) -> None:
        self._now = utc_now()

    def __call__(self):
        self._now += timedelta(milliseconds=1)
        return self._now


class FailingFeed:
    def fetch_quote(self, zip_code):
        raise PriceFeedUnavailableError(f"Failed to fetch upstream pricing for {zip_code}")


def _pipeline(stores: Stores, **kwargs) -> OnboardingPipeline:
    kwargs.setdefault("clock", TickingClock())
    return OnboardingPipeline(stores, kwargs.pop("feed", StaticTariffPriceFeed()), **kwargs)


def test_import_creates_draft_malo_and_event(stores, client) -> None:
    result = _pipeline(stores).import_contract(make_request())

    draft = stores.drafts.get(result.draft_id)
    malo = stores.drafts.get_malo_for_draft(result.draft_id)
    events = stores.events.list_for_contract(result.contract_id)

    assert result.success and not result.degraded
    assert result.contract_id.startswith("CONT-")
    assert draft.contract_id == result.contract_id
    assert draft.verification_status is VerificationStatus.PENDING
    assert draft.status is DraftStatus.DRAFT
    assert draft.tariff_type is TariffType.STANDARD
    assert draft.working_price_ct_kwh == Decimal("32.5000")
    assert draft.base_price_eur_month == Decimal("11.90")
    assert malo.market_location_id == "12345678901"
    assert malo.draft_status is VerificationStatus.PENDING
    assert malo.possible_supplier_change_date == date(2030, 1, 1)
    assert [e.event_type for e in events] == [ContractEventType.DRAFT_CREATED]
    assert events[0].actor == "funnel:enfinitus-website"
    assert len(client.rows("contract_drafts")) == 1
    assert len(client.rows("malo_drafts")) == 1


def test_import_captures_snapshot(stores) -> None:
    result = _pipeline(stores).import_contract(make_request())

    snapshot = stores.snapshots.get(result.snapshot_id)

    assert stores.drafts.get(result.draft_id).snapshot_id == result.snapshot_id
    assert snapshot.final_working_price == Decimal("34.0")
    assert stores.drafts.get(result.draft_id).working_price_ct_kwh == Decimal("32.5000")
    assert snapshot.zip_code == "10115"


@pytest.mark.parametrize(
    "tariff_id, campaign_key",
    [("standard-10115", "FIX12"), ("green-10115", "GREEN12"), ("dynamic-10115", "DYN")],
)
def test_default_campaign_per_tariff_type(stores, tariff_id, campaign_key) -> None:
    result = _pipeline(stores).import_contract(make_request(tariff_id=tariff_id))

    draft = stores.drafts.get(result.draft_id)

    assert draft.campaign_id == stores.campaigns.get_by_key(campaign_key).campaign_id


def test_explicit_campaign_key_is_used(stores) -> None:
    result = _pipeline(stores).import_contract(make_request(campaign_key="FIX24"))

    assert stores.drafts.get(result.draft_id).campaign_id == stores.campaigns.get_by_key("FIX24").campaign_id


def test_unknown_campaign_key_is_rejected(stores, client) -> None:
    with pytest.raises(CampaignNotFoundError) as excinfo:
        _pipeline(stores).import_contract(make_request(campaign_key="FIX99"))

    assert excinfo.value.campaign_key == "FIX99"
    assert client.rows("contract_drafts") == []


def test_unknown_tariff_is_rejected(stores, client) -> None:
    with pytest.raises(TariffTypeUnresolvedError):
        _pipeline(stores).import_contract(make_request(tariff_id="evergreen-10115"))

    assert client.rows("contract_drafts") == []


def test_voucher_discount_applies_to_campaign_price(stores) -> None:
    """Verify WELCOME10 takes 10% off the FIX12 campaign price, margin or not."""

    result = _pipeline(stores).import_contract(make_request(voucher_code="welcome10"))

    draft = stores.drafts.get(result.draft_id)

    assert result.voucher_applied and result.voucher_error is None
    assert draft.voucher_id == stores.vouchers.find_by_code("WELCOME10").voucher_id
    assert draft.working_price_ct_kwh == Decimal("29.2500")
    assert draft.base_price_eur_month == Decimal("10.71")
    assert stores.snapshots.get(result.snapshot_id).final_working_price == Decimal("34.0")


def test_voucher_larger_than_campaign_price_gives_zero(stores) -> None:
    stores.vouchers.create(
        campaign_code="CAMP-BIG-2020",
        voucher_code="BIG",
        start_date=date(2020, 1, 1),
        end_date=date(2099, 12, 31),
        discount_type=DiscountType.FIXED,
        discount_working_price_ct=Decimal("50"),
        discount_base_price_eur=Decimal("20"),
    )

    result = _pipeline(stores).import_contract(make_request(voucher_code="BIG"))

    draft = stores.drafts.get(result.draft_id)

    assert result.voucher_applied
    assert draft.working_price_ct_kwh == Decimal("0")
    assert draft.base_price_eur_month == Decimal("0")


def test_unknown_voucher_soft_fails(stores) -> None:
    result = _pipeline(stores).import_contract(make_request(voucher_code="NOPE"))

    draft = stores.drafts.get(result.draft_id)

    assert result.success
    assert not result.voucher_applied
    assert result.voucher_error == "VOUCHER_NOT_FOUND"
    assert draft.voucher_id is None
    assert draft.working_price_ct_kwh == Decimal("32.5000")


def test_expired_voucher_soft_fails(stores) -> None:
    stores.vouchers.create(
        campaign_code="CAMP-OLD5-2020",
        voucher_code="OLD5",
        start_date=date(2020, 1, 1),
        end_date=date(2020, 12, 31),
        discount_type=DiscountType.FIXED,
        discount_working_price_ct=Decimal("5"),
    )

    result = _pipeline(stores).import_contract(make_request(voucher_code="OLD5"))

    assert result.voucher_error == "VOUCHER_EXPIRED"
    assert stores.drafts.get(result.draft_id).working_price_ct_kwh == Decimal("32.5000")


def test_feed_failure_skips_snapshot(stores) -> None:
    result = _pipeline(stores, feed=FailingFeed()).import_contract(make_request())

    draft = stores.drafts.get(result.draft_id)

    assert result.snapshot_id is None
    assert draft.snapshot_id is None
    assert draft.working_price_ct_kwh == Decimal("32.5000")
    assert draft.base_price_eur_month == Decimal("11.90")


def test_snapshot_write_failure_keeps_import(stores, monkeypatch) -> None:
    def failing_capture(quote):
        raise PersistenceError("Failed to capture price snapshot: insert rejected")

    monkeypatch.setattr(stores.snapshots, "capture", failing_capture)

    result = _pipeline(stores).import_contract(make_request())

    assert result.snapshot_id is None
    assert stores.drafts.get(result.draft_id).working_price_ct_kwh == Decimal("32.5000")


def test_existing_customer_is_reused(stores, client) -> None:
    pipeline = _pipeline(stores)

    first = pipeline.import_contract(make_request(email="Max@Example.com"))
    second = pipeline.import_contract(make_request(email="max@example.com", malo_id="98765432109"))

    assert len(client.rows("customers")) == 1
    assert stores.drafts.get(first.draft_id).customer_id == stores.drafts.get(second.draft_id).customer_id
    assert first.contract_id != second.contract_id


def test_malo_failure_removes_contract_draft(stores, client, monkeypatch) -> None:
    """Verify a failed market-location write leaves no orphaned contract draft."""

    def failing_create_malo(malo):
        raise PersistenceError("Failed to create market location draft: insert rejected")

    monkeypatch.setattr(stores.drafts, "create_malo", failing_create_malo)

    with pytest.raises(MarketLocationDraftError) as excinfo:
        _pipeline(stores).import_contract(make_request())

    contract_id = excinfo.value.details["contract_id"]
    steps = [s.step for s in stores.saga.steps_for(contract_id)]

    assert client.rows("contract_drafts") == []
    assert client.rows("contract_events") == []
    assert steps == [SagaStepName.CONTRACT_DRAFT_CREATED, SagaStepName.COMPENSATED]


def test_outage_at_malo_step_is_compensated_not_retried(stores, client, monkeypatch) -> None:
    def unreachable_create_malo(malo):
        raise StoreUnavailableError("Store unreachable during create market location draft")

    monkeypatch.setattr(stores.drafts, "create_malo", unreachable_create_malo)
    fallback_client = InMemoryClient()
    pipeline = _pipeline(stores, fallback=Stores.for_client(fallback_client), allow_fallback=True)

    with pytest.raises(MarketLocationDraftError) as excinfo:
        pipeline.import_contract(make_request())

    assert isinstance(excinfo.value.__cause__, StoreUnavailableError)
    assert client.rows("contract_drafts") == []
    assert fallback_client.rows("contract_drafts") == []



def test_mock_mode_prefixes_contract_id(stores) -> None:
    result = _pipeline(stores, mock_mode=True).import_contract(make_request())

    assert result.contract_id.startswith(MOCK_PREFIX + "CONT-")
    assert result.degraded


def test_unreachable_store_falls_back_when_allowed(stores) -> None:
    primary = Stores.for_client(UnreachableClient())
    pipeline = _pipeline(primary, fallback=stores, allow_fallback=True)

    result = pipeline.import_contract(make_request())

    assert result.degraded
    assert result.contract_id.startswith(MOCK_PREFIX)
    assert result.verification_job_id is None
    assert stores.drafts.get(result.draft_id) is not None


def test_unreachable_store_raises_without_fallback(stores) -> None:
    primary = Stores.for_client(UnreachableClient())

    with pytest.raises(StoreUnavailableError):
        _pipeline(primary, fallback=stores, allow_fallback=False).import_contract(make_request())


def test_factory_fallback_follows_environment() -> None:
    development = build_services(
        make_settings(degraded_fallback=True),
        client=UnreachableClient(),
        price_feed=StaticTariffPriceFeed(),
        executor=ImmediateExecutor(),
    )
    production = build_services(
        make_settings(environment="production", degraded_fallback=True),
        client=UnreachableClient(),
        price_feed=StaticTariffPriceFeed(),
        executor=ImmediateExecutor(),
    )

    assert development.onboarding.import_contract(make_request()).degraded
    assert production.fallback_stores is None
    with pytest.raises(StoreUnavailableError):
        production.onboarding.import_contract(make_request())


def test_verification_is_scheduled(services) -> None:
    result = services.onboarding.import_contract(make_request())

    job = services.dispatcher.get_job(result.verification_job_id)

    assert job.draft_id == result.draft_id
    assert job.outcome is VerificationStatus.APPROVED


def test_recover_compensates_interrupted_import(stores, client, monkeypatch) -> None:
    def crash(malo):
        raise RuntimeError("worker process died")

    monkeypatch.setattr(stores.drafts, "create_malo", crash)
    pipeline = OnboardingPipeline(stores, StaticTariffPriceFeed())

    with pytest.raises(RuntimeError):
        pipeline.import_contract(make_request())
    assert len(client.rows("contract_drafts")) == 1

    assert pipeline.recover_incomplete_imports() == []

    (contract_id,) = stores.saga.list_by_contract().keys()
    assert pipeline.recover_incomplete_imports(grace=timedelta(0)) == [contract_id]
    assert client.rows("contract_drafts") == []
    assert stores.saga.steps_for(contract_id)[-1].step is SagaStepName.COMPENSATED
    assert pipeline.recover_incomplete_imports(grace=timedelta(0)) == []


def test_recover_ignores_completed_imports(stores) -> None:
    pipeline = _pipeline(stores)
    pipeline.import_contract(make_request())

    assert pipeline.recover_incomplete_imports(grace=timedelta(0)) == []


def test_zip_code_falls_back_to_tariff_suffix() -> None:
    request = make_request(zip_code="", tariff_id="green-80331")

    assert zip_code_for(request) == "80331"
    assert zip_code_for(make_request(zip_code=" 10115 ")) == "10115"
