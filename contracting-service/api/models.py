"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Field names are snake_case in Python and camelCase on the wire, matching
what the sales funnels and the ops console send.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from domain.tariff import TariffType
from domain.voucher import DiscountType


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ============================================================================
# Import Models
# ============================================================================

class CustomerIn(CamelModel):
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    street: Optional[str] = None
    house_number: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None


class ContractIn(CamelModel):
    tariff_id: str = Field(..., description="Product tariff id, e.g. standard-10115")
    campaign_key: Optional[str] = None
    estimated_consumption: Optional[int] = Field(None, ge=0)
    desired_start_date: Optional[date] = None
    iban: Optional[str] = None
    sepa_mandate: bool = False
    voucher_code: Optional[str] = None

    @field_validator("tariff_id")
    @classmethod
    def tariff_id_has_known_product(cls, value: str) -> str:
        if TariffType.for_tariff_id(value) is None:
            raise ValueError(
                "tariff id must start with one of: standard, fix12, green, oeko, dynamic, dynamisch"
            )
        return value


class MeterLocationIn(CamelModel):
    malo_id: Optional[str] = None
    has_own_msb: bool = False
    meter_number: Optional[str] = None
    previous_provider_id: Optional[str] = None
    previous_consumption: Optional[int] = Field(None, ge=0)


class ImportContractRequest(CamelModel):
    """Signed order submitted by a sales funnel."""
    funnel_id: str = Field(..., min_length=1)
    customer: CustomerIn
    contract: ContractIn
    meter_location: MeterLocationIn = Field(default_factory=MeterLocationIn)

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "funnelId": "enfinitus-website",
                "customer": {
                    "email": "max@example.com",
                    "firstName": "Max",
                    "lastName": "Mustermann",
                    "zipCode": "10115",
                    "city": "Berlin",
                },
                "contract": {
                    "tariffId": "standard-10115",
                    "estimatedConsumption": 2500,
                    "desiredStartDate": "2026-01-01",
                    "iban": "DE89370400440532013000",
                    "sepaMandate": True,
                    "voucherCode": "WELCOME10",
                },
                "meterLocation": {
                    "maloId": "12345678901",
                    "hasOwnMsb": False,
                    "meterNumber": "1ESY1160000000",
                    "previousProviderId": "9900000000003",
                    "previousConsumption": 2400,
                },
            }
        }


class ImportContractResponse(CamelModel):
    success: bool
    contract_id: str
    draft_id: UUID
    degraded: bool
    verification_job_id: Optional[UUID] = None
    voucher_applied: bool = False
    voucher_error: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str


# ============================================================================
# Ops Models
# ============================================================================

class CampaignResponse(CamelModel):
    campaign_id: UUID
    campaign_key: str
    name: str
    tariff_type: str
    energy_price_ct_kwh: Decimal
    base_price_eur_month: Decimal


class MarketingCampaignRequest(CamelModel):
    voucher_code: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    discount_type: DiscountType = DiscountType.FIXED
    discount_working_price_ct: Decimal = Decimal("0")
    discount_base_price_eur: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    funnel_id: Optional[str] = None


class MarketingCampaignResponse(CamelModel):
    voucher_id: UUID
    campaign_code: str
    voucher_code: str
    funnel_id: Optional[str]
    start_date: date
    end_date: date
    is_active: bool
    discount_type: str
    discount_working_price_ct: Decimal
    discount_base_price_eur: Decimal
    discount_percent: Decimal


class ContractDraftResponse(CamelModel):
    draft_id: UUID
    contract_id: str
    funnel_id: str
    customer_id: UUID
    campaign_id: UUID
    tariff_id: str
    tariff_type: str
    voucher_id: Optional[UUID]
    snapshot_id: Optional[UUID]
    working_price_ct_kwh: Decimal
    base_price_eur_month: Decimal
    expected_consumption_kwh: Optional[int]
    desired_start_date: Optional[date]
    sepa_mandate: bool
    verification_status: str
    status: str
    created_at: datetime


class MaloDraftResponse(CamelModel):
    malo_draft_id: UUID
    draft_id: UUID
    customer_id: UUID
    market_location_id: Optional[str]
    has_own_msb: bool
    meter_number: Optional[str]
    previous_provider_code: Optional[str]
    previous_annual_consumption: Optional[int]
    possible_supplier_change_date: Optional[date]
    score_accepted: Optional[bool]
    draft_status: str
    updated_at: Optional[datetime]


class MaloDraftPatch(CamelModel):
    """Operator patch; only the fields sent are applied."""
    market_location_id: Optional[str] = None
    has_own_msb: Optional[bool] = None
    meter_number: Optional[str] = None
    previous_provider_code: Optional[str] = None
    previous_annual_consumption: Optional[int] = Field(None, ge=0)
    possible_supplier_change_date: Optional[date] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "forbid"

    @field_validator("has_own_msb")
    @classmethod
    def has_own_msb_not_null(cls, value: Optional[bool]) -> bool:
        if value is None:
            raise ValueError("hasOwnMsb must be true or false")
        return value


class ConfirmSwitchRequest(CamelModel):
    draft_id: UUID


class ContractResponse(CamelModel):
    contract_uuid: UUID
    contract_number: str
    draft_id: UUID
    customer_id: UUID
    funnel_id: str
    snapshot_id: Optional[UUID]
    voucher_id: Optional[UUID]
    working_price_ct_kwh: Decimal
    base_price_eur_month: Decimal
    start_date: Optional[date]
    status: str
    created_at: datetime


class ContractEventResponse(CamelModel):
    event_id: UUID
    contract_id: str
    event_type: str
    actor: Optional[str]
    details: Dict[str, Any]
    created_at: datetime


class MarginResponse(CamelModel):
    funnel_id: str
    tariff_type: str
    working_price_ct: Decimal
    base_price_eur: Decimal
    updated_at: Optional[datetime] = None


class MarginUpdateRequest(CamelModel):
    funnel_id: str = Field(..., min_length=1)
    tariff_type: TariffType
    working_price_ct: Decimal
    base_price_eur: Decimal


class VerificationJobResponse(CamelModel):
    job_id: UUID
    draft_id: UUID
    contract_id: str
    status: str
    outcome: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime
    finished_at: Optional[datetime] = None


class RecoveryResponse(CamelModel):
    recovered_contract_ids: List[str]
