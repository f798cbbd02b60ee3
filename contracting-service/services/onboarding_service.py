"""
Onboarding service: imports a signed funnel order as a contract draft.

Flow (import_contract):
1. Resolve the customer by email, creating it on first import
2. Classify the tariff type from the tariff id (enumerated prefixes only)
3. Resolve the campaign: the requested key, else the tariff type's default
4. Resolve the voucher (optional, soft-fail: an inapplicable voucher is
   logged and the import continues at full price). The discount comes off
   the campaign's working and base price, each clamped at zero
5. Resolve and snapshot upstream price plus funnel margin (best-effort: a
   feed or snapshot failure is logged and the draft is written without a
   snapshot). The snapshot is a record and does not price the draft
6. Create the ContractDraft (PENDING / DRAFT)
7. Create the MarketLocationDraft; on failure delete the ContractDraft
   and raise MarketLocationDraftError
8. Append DRAFT_CREATED
9. Hand the draft to the verification dispatcher and return without
   waiting for the outcome

Steps 1-7 are separate writes without a spanning transaction. Each write
that matters for cleanup is recorded in the saga step log so that
recover_incomplete_imports() can remove drafts orphaned by a crash between
steps 6 and 7.

Degraded mode:
- CONTRACTING_STORE=memory: the primary store is in-process; contract ids
  are prefixed "MOCK-" and results are flagged degraded
- A StoreUnavailableError during steps 1-6 re-runs the import against the
  in-process fallback store when the fallback is allowed (never in
  production). Fallback imports are flagged degraded and not verified.
- A StoreUnavailableError at step 7 is compensated like any other
  market-location failure and raised as MarketLocationDraftError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import UUID, uuid4

from domain.contract import ContractDraft, MarketLocationDraft
from domain.customer import Customer, CustomerDetails
from domain.errors import (
    CampaignNotFoundError,
    ContractingError,
    MarketLocationDraftError,
    PersistenceError,
    PriceFeedUnavailableError,
    StoreUnavailableError,
    VoucherNotApplicableError,
)
from domain.events import ContractEventType
from domain.pricing import round_base_price, round_working_price
from domain.saga import SagaStepName
from domain.tariff import Campaign, TariffType
from domain.time import utc_now, utc_today
from domain.voucher import Voucher
from repositories.stores import Stores
from services.audit_log import AuditLog
from services.price_feed import TariffPriceFeed
from services.pricing_service import PriceResolver
from services.verification_service import VerificationDispatcher

logger = logging.getLogger(__name__)

MOCK_PREFIX = "MOCK-"


@dataclass(frozen=True, slots=True)
class ContractTerms:
    tariff_id: str
    campaign_key: Optional[str] = None
    estimated_consumption_kwh: Optional[int] = None
    desired_start_date: Optional[date] = None
    iban: Optional[str] = None
    sepa_mandate: bool = False
    voucher_code: Optional[str] = None


@dataclass(frozen=True, slots=True)
class MeterLocation:
    market_location_id: Optional[str] = None
    has_own_msb: bool = False
    meter_number: Optional[str] = None
    previous_provider_code: Optional[str] = None
    previous_annual_consumption: Optional[int] = None


@dataclass(frozen=True, slots=True)
class ImportRequest:
    """A signed order as submitted by a sales funnel."""

    funnel_id: str
    customer: CustomerDetails
    contract: ContractTerms
    meter_location: MeterLocation


@dataclass(frozen=True, slots=True)
class ImportResult:
    success: bool
    contract_id: str
    draft_id: UUID
    degraded: bool = False
    verification_job_id: Optional[UUID] = None
    snapshot_id: Optional[UUID] = None
    voucher_applied: bool = False
    voucher_error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class _DraftedImport:
    draft: ContractDraft
    malo: MarketLocationDraft
    campaign: Campaign
    voucher: Optional[Voucher]
    voucher_error: Optional[str]


def zip_code_for(request: ImportRequest) -> Optional[str]:
    """Delivery postal code: the customer's, else the tariff id suffix (`standard-10115`)."""

    if request.customer.zip_code:
        return request.customer.zip_code.strip()
    _, _, suffix = request.contract.tariff_id.partition("-")
    return suffix.strip() or None


class OnboardingPipeline:
    def __init__(
        self,
        stores: Stores,
        price_feed: TariffPriceFeed,
        dispatcher: Optional[VerificationDispatcher] = None,
        *,
        fallback: Optional[Stores] = None,
        allow_fallback: bool = False,
        mock_mode: bool = False,
        clock: Callable = utc_now,
    ) -> None:
        self._stores = stores
        self._price_feed = price_feed
        self._dispatcher = dispatcher
        self._fallback = fallback
        self._allow_fallback = allow_fallback
        self._mock_mode = mock_mode
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Import
    # ------------------------------------------------------------------ #
    def import_contract(self, request: ImportRequest) -> ImportResult:
        """
        Import a funnel order as a contract draft and trigger verification.

        Args:
            request: Customer, contract terms and meter location

        Returns:
            ImportResult with the contract correlation id and draft id

        Raises:
            TariffTypeUnresolvedError: tariff id prefix is not a known product
            CampaignNotFoundError: the campaign key does not exist
            MarketLocationDraftError: market-location draft could not be
                written (the contract draft was removed)
            StoreUnavailableError: store unreachable and no fallback allowed
            PersistenceError: store rejected a write
        """

        logger.info(f"Importing contract for {request.customer.email} from funnel {request.funnel_id}")

        stores, degraded, verify = self._stores, self._mock_mode, True
        try:
            drafted = self._create_drafts(request, stores, degraded)
        except StoreUnavailableError:
            if self._fallback is None or not self._allow_fallback:
                raise
            logger.warning(
                "Primary store unavailable; importing into in-process fallback store",
                extra={"funnel_id": request.funnel_id},
            )
            stores, degraded, verify = self._fallback, True, False
            drafted = self._create_drafts(request, stores, degraded)

        return self._complete(request, drafted, stores, degraded, verify)

    def _create_drafts(self, request: ImportRequest, stores: Stores, mock: bool) -> _DraftedImport:
        terms = request.contract

        # 1. Customer
        customer = self._resolve_customer(stores, request.customer)

        # 2. Tariff type (the default campaign depends on it)
        tariff_type = TariffType.from_tariff_id(terms.tariff_id)

        # 3. Campaign
        campaign_key = terms.campaign_key or tariff_type.default_campaign_key
        campaign = stores.campaigns.get_by_key(campaign_key)
        if campaign is None:
            raise CampaignNotFoundError(campaign_key)

        # 4. Voucher
        voucher, voucher_error = self._resolve_voucher(stores, request)

        # 5. Price snapshot (record only; the draft is priced from the campaign)
        snapshot_id = self._capture_price(stores, request, tariff_type)
        working_price, base_price = self._apply_voucher(
            voucher, campaign.energy_price_ct_kwh, campaign.base_price_eur_month
        )

        # 6. Contract draft
        now = self._clock()
        contract_id = self._new_contract_id(customer.customer_id, campaign.campaign_id, mock)
        draft = ContractDraft(
            draft_id=uuid4(),
            contract_id=contract_id,
            funnel_id=request.funnel_id,
            customer_id=customer.customer_id,
            campaign_id=campaign.campaign_id,
            tariff_id=terms.tariff_id,
            tariff_type=tariff_type,
            working_price_ct_kwh=working_price,
            base_price_eur_month=base_price,
            expected_consumption_kwh=terms.estimated_consumption_kwh,
            desired_start_date=terms.desired_start_date,
            iban=terms.iban,
            sepa_mandate=terms.sepa_mandate,
            created_at=now,
            voucher_id=voucher.voucher_id if voucher else None,
            snapshot_id=snapshot_id,
        )
        stores.drafts.create(draft)
        stores.saga.record(contract_id, SagaStepName.CONTRACT_DRAFT_CREATED, str(draft.draft_id))

        # 7. Market-location draft
        location = request.meter_location
        malo = MarketLocationDraft(
            malo_draft_id=uuid4(),
            draft_id=draft.draft_id,
            customer_id=customer.customer_id,
            market_location_id=location.market_location_id,
            has_own_msb=location.has_own_msb,
            meter_number=location.meter_number,
            previous_provider_code=location.previous_provider_code,
            previous_annual_consumption=location.previous_annual_consumption,
            possible_supplier_change_date=terms.desired_start_date,
        )
        try:
            malo = stores.drafts.create_malo(malo)
        except ContractingError as e:
            self._compensate_draft(stores, draft)
            raise MarketLocationDraftError(
                f"Failed to create market location draft for {contract_id}: {e.message}",
                contract_id=contract_id,
            ) from e
        stores.saga.record(contract_id, SagaStepName.MALO_DRAFT_CREATED, str(malo.malo_draft_id))

        return _DraftedImport(
            draft=draft, malo=malo, campaign=campaign, voucher=voucher, voucher_error=voucher_error
        )

    def _complete(
        self,
        request: ImportRequest,
        drafted: _DraftedImport,
        stores: Stores,
        degraded: bool,
        verify: bool,
    ) -> ImportResult:
        draft = drafted.draft

        # 8. Audit
        AuditLog(stores.events).append(
            draft.contract_id,
            ContractEventType.DRAFT_CREATED,
            details={
                "draft_id": str(draft.draft_id),
                "malo_draft_id": str(drafted.malo.malo_draft_id),
                "funnel_id": draft.funnel_id,
                "campaign_key": drafted.campaign.campaign_key,
                "tariff_id": draft.tariff_id,
                "tariff_type": draft.tariff_type.value,
                "voucher_code": drafted.voucher.voucher_code if drafted.voucher else None,
                "snapshot_id": str(draft.snapshot_id) if draft.snapshot_id else None,
                "working_price_ct_kwh": str(draft.working_price_ct_kwh),
                "base_price_eur_month": str(draft.base_price_eur_month),
                "degraded": degraded,
            },
            actor=f"funnel:{request.funnel_id}",
        )
        stores.saga.record(draft.contract_id, SagaStepName.COMPLETED, str(draft.draft_id))

        # 9. Detached verification
        job_id: Optional[UUID] = None
        if not verify:
            logger.warning(f"Draft {draft.contract_id} is in the fallback store; verification not scheduled")
        elif self._dispatcher is not None:
            try:
                job_id = self._dispatcher.submit(draft.draft_id, draft.contract_id).job_id
            except (ContractingError, RuntimeError):
                logger.exception(f"Failed to schedule verification for {draft.contract_id}")

        logger.info(
            f"Contract import successful. Draft ID: {draft.draft_id}",
            extra={"contract_id": draft.contract_id, "degraded": degraded},
        )
        return ImportResult(
            success=True,
            contract_id=draft.contract_id,
            draft_id=draft.draft_id,
            degraded=degraded,
            verification_job_id=job_id,
            snapshot_id=draft.snapshot_id,
            voucher_applied=drafted.voucher is not None,
            voucher_error=drafted.voucher_error,
        )

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #
    @staticmethod
    def _resolve_customer(stores: Stores, details: CustomerDetails) -> Customer:
        customer = stores.customers.get_by_email(details.email)
        if customer is not None:
            return customer
        customer = stores.customers.create(details)
        logger.info(f"Created customer {customer.customer_id} for {customer.email}")
        return customer

    @staticmethod
    def _resolve_voucher(stores: Stores, request: ImportRequest) -> tuple[Optional[Voucher], Optional[str]]:
        code = (request.contract.voucher_code or "").strip()
        if not code:
            return None, None

        try:
            voucher = stores.vouchers.find_by_code(code)
            if voucher is None:
                raise VoucherNotApplicableError(code, "VOUCHER_NOT_FOUND", f"Voucher {code} not found")
            voucher.ensure_applicable(request.funnel_id, utc_today())
        except VoucherNotApplicableError as e:
            logger.warning(
                f"Voucher not applied: {e.message}",
                extra={"voucher_code": code, "reason": e.code, "funnel_id": request.funnel_id},
            )
            return None, e.code

        logger.info(f"Applied voucher {voucher.voucher_code} ({voucher.campaign_code})")
        return voucher, None

    def _capture_price(
        self, stores: Stores, request: ImportRequest, tariff_type: TariffType
    ) -> Optional[UUID]:
        zip_code = zip_code_for(request)
        if not zip_code:
            logger.warning("No postal code on import; skipping price snapshot")
            return None

        resolver = PriceResolver(self._price_feed, stores.margins)
        try:
            quote = resolver.resolve(request.funnel_id, tariff_type, zip_code)
        except (PriceFeedUnavailableError, PersistenceError) as e:
            logger.warning(f"Price resolution failed, continuing without snapshot: {e}")
            return None

        try:
            snapshot_id = stores.snapshots.capture(quote)
        except PersistenceError as e:
            logger.warning(f"Failed to create tariff snapshot: {e}")
            return None
        return snapshot_id

    @staticmethod
    def _apply_voucher(
        voucher: Optional[Voucher], working: Decimal, base: Decimal
    ) -> tuple[Decimal, Decimal]:
        if voucher is None:
            return round_working_price(working), round_base_price(base)
        discounted = voucher.apply(working, base)
        return discounted.working_price_ct_kwh, discounted.base_price_eur_month

    def _new_contract_id(self, customer_id: UUID, campaign_id: UUID, mock: bool) -> str:
        millis = int(self._clock().timestamp() * 1000)
        contract_id = f"CONT-{str(customer_id)[:8]}-{str(campaign_id)[:8]}-{millis}"
        return MOCK_PREFIX + contract_id if mock else contract_id

    @staticmethod
    def _compensate_draft(stores: Stores, draft: ContractDraft) -> None:
        try:
            stores.drafts.delete(draft.draft_id)
            stores.saga.record(draft.contract_id, SagaStepName.COMPENSATED, str(draft.draft_id))
        except ContractingError:
            # Left for recover_incomplete_imports(); the saga log still shows the draft.
            logger.exception(f"Compensation failed for {draft.contract_id}; draft {draft.draft_id} remains")
            return
        logger.warning(f"Rolled back contract draft {draft.contract_id} after market location failure")

    # ------------------------------------------------------------------ #
    # Recovery
    # ------------------------------------------------------------------ #
    def recover_incomplete_imports(self, grace: timedelta = timedelta(minutes=5)) -> List[str]:
        """
        Compensate imports that created a contract draft but never reached
        the market-location draft.

        Only runs older than `grace` are touched so in-flight imports are
        left alone.

        Returns:
            Contract ids that were compensated
        """

        stores = self._stores
        cutoff = self._clock() - grace
        recovered: List[str] = []

        for contract_id, steps in stores.saga.list_by_contract().items():
            names = {step.step for step in steps}
            if SagaStepName.CONTRACT_DRAFT_CREATED not in names:
                continue
            if names & {SagaStepName.MALO_DRAFT_CREATED, SagaStepName.COMPLETED, SagaStepName.COMPENSATED}:
                continue
            started = next(s for s in steps if s.step is SagaStepName.CONTRACT_DRAFT_CREATED)
            if started.created_at > cutoff:
                continue

            draft = stores.drafts.get_by_contract_id(contract_id)
            if draft is not None:
                stores.drafts.delete_malo_for_draft(draft.draft_id)
                stores.drafts.delete(draft.draft_id)
            stores.saga.record(contract_id, SagaStepName.COMPENSATED, started.entity_id)
            logger.warning(f"Recovered incomplete import {contract_id}")
            recovered.append(contract_id)

        return recovered


__all__ = [
    "ContractTerms",
    "MeterLocation",
    "ImportRequest",
    "ImportResult",
    "OnboardingPipeline",
    "zip_code_for",
]
