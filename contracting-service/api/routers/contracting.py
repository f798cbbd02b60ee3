"""
Contract Import API Endpoint.

Entry point for sales funnels submitting a signed order.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_services
from api.models import ErrorResponse, ImportContractRequest, ImportContractResponse
from domain.customer import CustomerDetails
from services.factory import ContractingServices
from services.onboarding_service import ContractTerms, ImportRequest, MeterLocation

router = APIRouter()


def to_import_request(request: ImportContractRequest) -> ImportRequest:
    """Convert the API payload to the service request."""

    customer = request.customer
    contract = request.contract
    location = request.meter_location
    return ImportRequest(
        funnel_id=request.funnel_id,
        customer=CustomerDetails(
            email=customer.email,
            first_name=customer.first_name,
            last_name=customer.last_name,
            phone=customer.phone,
            street=customer.street,
            house_number=customer.house_number,
            zip_code=customer.zip_code,
            city=customer.city,
        ),
        contract=ContractTerms(
            tariff_id=contract.tariff_id,
            campaign_key=contract.campaign_key,
            estimated_consumption_kwh=contract.estimated_consumption,
            desired_start_date=contract.desired_start_date,
            iban=contract.iban,
            sepa_mandate=contract.sepa_mandate,
            voucher_code=contract.voucher_code,
        ),
        meter_location=MeterLocation(
            market_location_id=location.malo_id,
            has_own_msb=location.has_own_msb,
            meter_number=location.meter_number,
            previous_provider_code=location.previous_provider_id,
            previous_annual_consumption=location.previous_consumption,
        ),
    )


@router.post(
    "/import",
    status_code=201,
    response_model=ImportContractResponse,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Import Contract",
    description="Import a signed funnel order as a contract draft and start verification.",
)
def import_contract(
    request: ImportContractRequest,
    services: ContractingServices = Depends(get_services),
):
    """
    Import a contract from a sales funnel.

    **Process:**
    1. Finds or creates the customer (by email)
    2. Resolves the campaign (explicit key, else the tariff's default)
    3. Takes the voucher discount off the campaign price if the voucher is
       valid today for this funnel
    4. Records upstream price plus funnel margin in a snapshot
    5. Creates the contract draft and the market location draft
    6. Starts verification in the background and returns immediately

    An invalid voucher does not fail the import; `voucherError` names the
    reason. `degraded: true` means the draft was written to the in-process
    store and is not persisted in the database.

    **Success response:**
    ```json
    {
      "success": true,
      "contractId": "CONT-1a2b3c4d-5e6f7a8b-1767225600000",
      "draftId": "123e4567-e89b-12d3-a456-426614174000",
      "degraded": false,
      "verificationJobId": "123e4567-e89b-12d3-a456-426614174009",
      "voucherApplied": true,
      "voucherError": null
    }
    ```
    """
    result = services.onboarding.import_contract(to_import_request(request))
    return ImportContractResponse(
        success=result.success,
        contract_id=result.contract_id,
        draft_id=result.draft_id,
        degraded=result.degraded,
        verification_job_id=result.verification_job_id,
        voucher_applied=result.voucher_applied,
        voucher_error=result.voucher_error,
    )
