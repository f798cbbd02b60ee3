"""
Operations Console API Endpoints.

Listings, market-location corrections, switch confirmation, contract
history, voucher creation and margin maintenance.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_operator, get_services
from api.models import (
    CampaignResponse,
    ConfirmSwitchRequest,
    ContractDraftResponse,
    ContractEventResponse,
    ContractResponse,
    MaloDraftPatch,
    MaloDraftResponse,
    MarginResponse,
    MarginUpdateRequest,
    MarketingCampaignRequest,
    MarketingCampaignResponse,
    RecoveryResponse,
    VerificationJobResponse,
)
from domain.contract import Contract, ContractDraft, MarketLocationDraft
from domain.errors import DraftNotFoundError
from domain.events import ContractEvent
from domain.pricing import Margin
from domain.tariff import Campaign
from domain.verification import VerificationJob
from domain.voucher import Voucher
from services.factory import ContractingServices

router = APIRouter()


# ============================================================================
# Domain -> response conversion
# ============================================================================

def _campaign(campaign: Campaign) -> CampaignResponse:
    return CampaignResponse(
        campaign_id=campaign.campaign_id,
        campaign_key=campaign.campaign_key,
        name=campaign.name,
        tariff_type=campaign.tariff_type.value,
        energy_price_ct_kwh=campaign.energy_price_ct_kwh,
        base_price_eur_month=campaign.base_price_eur_month,
    )


def _voucher(voucher: Voucher) -> MarketingCampaignResponse:
    return MarketingCampaignResponse(
        voucher_id=voucher.voucher_id,
        campaign_code=voucher.campaign_code,
        voucher_code=voucher.voucher_code,
        funnel_id=voucher.funnel_id,
        start_date=voucher.start_date,
        end_date=voucher.end_date,
        is_active=voucher.is_active,
        discount_type=voucher.discount_type.value,
        discount_working_price_ct=voucher.discount_working_price_ct,
        discount_base_price_eur=voucher.discount_base_price_eur,
        discount_percent=voucher.discount_percent,
    )


def _draft(draft: ContractDraft) -> ContractDraftResponse:
    return ContractDraftResponse(
        draft_id=draft.draft_id,
        contract_id=draft.contract_id,
        funnel_id=draft.funnel_id,
        customer_id=draft.customer_id,
        campaign_id=draft.campaign_id,
        tariff_id=draft.tariff_id,
        tariff_type=draft.tariff_type.value,
        voucher_id=draft.voucher_id,
        snapshot_id=draft.snapshot_id,
        working_price_ct_kwh=draft.working_price_ct_kwh,
        base_price_eur_month=draft.base_price_eur_month,
        expected_consumption_kwh=draft.expected_consumption_kwh,
        desired_start_date=draft.desired_start_date,
        sepa_mandate=draft.sepa_mandate,
        verification_status=draft.verification_status.value,
        status=draft.status.value,
        created_at=draft.created_at,
    )


def _malo(malo: MarketLocationDraft) -> MaloDraftResponse:
    return MaloDraftResponse(
        malo_draft_id=malo.malo_draft_id,
        draft_id=malo.draft_id,
        customer_id=malo.customer_id,
        market_location_id=malo.market_location_id,
        has_own_msb=malo.has_own_msb,
        meter_number=malo.meter_number,
        previous_provider_code=malo.previous_provider_code,
        previous_annual_consumption=malo.previous_annual_consumption,
        possible_supplier_change_date=malo.possible_supplier_change_date,
        score_accepted=malo.score_accepted,
        draft_status=malo.draft_status.value,
        updated_at=malo.updated_at,
    )


def _contract(contract: Contract) -> ContractResponse:
    return ContractResponse(
        contract_uuid=contract.contract_uuid,
        contract_number=contract.contract_number,
        draft_id=contract.draft_id,
        customer_id=contract.customer_id,
        funnel_id=contract.funnel_id,
        snapshot_id=contract.snapshot_id,
        voucher_id=contract.voucher_id,
        working_price_ct_kwh=contract.working_price_ct_kwh,
        base_price_eur_month=contract.base_price_eur_month,
        start_date=contract.start_date,
        status=contract.status,
        created_at=contract.created_at,
    )


def _event(event: ContractEvent) -> ContractEventResponse:
    return ContractEventResponse(
        event_id=event.event_id,
        contract_id=event.contract_id,
        event_type=event.event_type.value,
        actor=event.actor,
        details=dict(event.details),
        created_at=event.created_at,
    )


def _margin(margin: Margin) -> MarginResponse:
    return MarginResponse(
        funnel_id=margin.funnel_id,
        tariff_type=margin.tariff_type.value,
        working_price_ct=margin.working_price_ct,
        base_price_eur=margin.base_price_eur,
        updated_at=margin.updated_at,
    )


def _job(job: VerificationJob) -> VerificationJobResponse:
    return VerificationJobResponse(
        job_id=job.job_id,
        draft_id=job.draft_id,
        contract_id=job.contract_id,
        status=job.status.value,
        outcome=job.outcome.value if job.outcome else None,
        error=job.error,
        created_at=job.created_at,
        finished_at=job.finished_at,
    )


# ============================================================================
# Campaigns and vouchers
# ============================================================================

@router.get("/campaigns", response_model=List[CampaignResponse], summary="List Campaigns")
def list_campaigns(services: ContractingServices = Depends(get_services)):
    return [_campaign(c) for c in services.queries.list_campaigns()]


@router.get(
    "/marketing-campaigns",
    response_model=List[MarketingCampaignResponse],
    summary="List Marketing Campaigns",
)
def list_marketing_campaigns(services: ContractingServices = Depends(get_services)):
    return [_voucher(v) for v in services.queries.list_marketing_campaigns()]


@router.post(
    "/marketing-campaigns",
    status_code=201,
    response_model=MarketingCampaignResponse,
    summary="Create Marketing Campaign",
)
def create_marketing_campaign(
    request: MarketingCampaignRequest,
    services: ContractingServices = Depends(get_services),
):
    """
    Create a voucher. The campaign code is generated as
    `CAMP-<VOUCHERCODE>-<start year>`.
    """
    voucher = services.queries.create_marketing_campaign(
        voucher_code=request.voucher_code,
        start_date=request.start_date,
        end_date=request.end_date,
        discount_type=request.discount_type,
        discount_working_price_ct=request.discount_working_price_ct,
        discount_base_price_eur=request.discount_base_price_eur,
        discount_percent=request.discount_percent,
        funnel_id=request.funnel_id,
    )
    return _voucher(voucher)


# ============================================================================
# Drafts
# ============================================================================

@router.get("/contracts", response_model=List[ContractDraftResponse], summary="List Contract Drafts")
def list_contract_drafts(
    customer_id: Optional[UUID] = Query(None, alias="customerId"),
    services: ContractingServices = Depends(get_services),
):
    return [_draft(d) for d in services.queries.list_contract_drafts(customer_id)]


@router.get(
    "/malo-drafts/{contract_id}",
    response_model=List[MaloDraftResponse],
    summary="Market Location Drafts for a Contract",
)
def get_malo_drafts(contract_id: str, services: ContractingServices = Depends(get_services)):
    return [_malo(m) for m in services.queries.get_malo_drafts(contract_id)]


@router.put(
    "/malo-drafts/{malo_draft_id}",
    response_model=MaloDraftResponse,
    summary="Correct Market Location Draft",
)
def update_malo_draft(
    malo_draft_id: UUID,
    patch: MaloDraftPatch,
    services: ContractingServices = Depends(get_services),
    operator: str = Depends(get_operator),
):
    """
    Patch a market location draft. Only the fields sent are changed;
    the verification status cannot be edited. Rejected once the contract
    is active.
    """
    fields = patch.model_dump(exclude_unset=True, by_alias=False)
    return _malo(services.editor.update_malo_draft(malo_draft_id, fields, operator))


@router.post(
    "/confirm-switch",
    response_model=ContractResponse,
    summary="Confirm Supplier Switch",
)
def confirm_switch(
    request: ConfirmSwitchRequest,
    services: ContractingServices = Depends(get_services),
    operator: str = Depends(get_operator),
):
    """
    Activate an approved contract draft. `draftId` is the contract draft id.
    Fails with 409 if the draft is not approved or already active.
    """
    return _contract(services.activation.confirm_switch(request.draft_id, operator))


@router.get(
    "/contracts/{contract_id}/events",
    response_model=List[ContractEventResponse],
    summary="Contract History",
)
def contract_history(contract_id: str, services: ContractingServices = Depends(get_services)):
    return [_event(e) for e in services.queries.contract_history(contract_id)]


@router.get(
    "/verification-jobs/{job_id}",
    response_model=VerificationJobResponse,
    summary="Verification Job Status",
)
def get_verification_job(job_id: UUID, services: ContractingServices = Depends(get_services)):
    job = services.dispatcher.get_job(job_id)
    if job is None:
        raise DraftNotFoundError(f"Verification job not found: {job_id}")
    return _job(job)


@router.post(
    "/recover-imports",
    response_model=RecoveryResponse,
    summary="Compensate Incomplete Imports",
)
def recover_imports(services: ContractingServices = Depends(get_services)):
    return RecoveryResponse(recovered_contract_ids=services.onboarding.recover_incomplete_imports())


# ============================================================================
# Margins
# ============================================================================

@router.get("/margins", response_model=List[MarginResponse], summary="List Margins")
def list_margins(services: ContractingServices = Depends(get_services)):
    return [_margin(m) for m in services.queries.list_margins()]


@router.put("/margins", response_model=MarginResponse, summary="Set Margin")
def upsert_margin(
    request: MarginUpdateRequest,
    services: ContractingServices = Depends(get_services),
):
    """
    Create or replace the margin for a funnel and tariff type. Existing
    price snapshots are not affected.
    """
    margin = services.queries.upsert_margin(
        request.funnel_id,
        request.tariff_type,
        request.working_price_ct,
        request.base_price_eur,
    )
    return _margin(margin)
