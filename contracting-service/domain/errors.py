"""
Domain: typed error hierarchy for the contracting core.

Every failure the onboarding saga can produce has its own exception class
with a machine-readable `code`, so callers branch on type rather than on
message text. Categories:

    ContractingError (base)
    |
    +-- ValidationError        soft for vouchers, hard for operator patches
    |   +-- VoucherNotApplicableError
    |   +-- FieldNotEditableError
    |
    +-- ResolutionError        hard-fails the import
    |   +-- CampaignNotFoundError
    |   +-- TariffTypeUnresolvedError
    |
    +-- ConnectivityError      collaborator unreachable
    |   +-- StoreUnavailableError
    |   +-- PriceFeedUnavailableError
    |
    +-- PersistenceError       store answered with an error
    |
    +-- IntegrityError         multi-row write failed half-way
    |   +-- MarketLocationDraftError
    |   +-- ActivationError
    |
    +-- DomainError            state machine rejected the operation
        +-- DraftNotFoundError
        +-- DraftNotApprovedError
        +-- DraftAlreadyActiveError
"""

from __future__ import annotations

from typing import Any, Optional


class ContractingError(Exception):
    """Base class for all contracting errors."""

    code: str = "CONTRACTING_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationError(ContractingError):
    code = "VALIDATION_ERROR"


class VoucherNotApplicableError(ValidationError):
    """Voucher is unknown, outside its validity window, or bound to another funnel."""

    code = "VOUCHER_NOT_APPLICABLE"

    def __init__(self, voucher_code: str, reason: str, message: str) -> None:
        super().__init__(message, code=reason, voucher_code=voucher_code)
        self.voucher_code = voucher_code
        self.reason = reason


class FieldNotEditableError(ValidationError):
    code = "FIELD_NOT_EDITABLE"

    def __init__(self, message: str, fields: Optional[list[str]] = None) -> None:
        super().__init__(message, fields=fields or [])
        self.fields = fields or []


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

class ResolutionError(ContractingError):
    code = "RESOLUTION_ERROR"


class CampaignNotFoundError(ResolutionError):
    code = "CAMPAIGN_NOT_FOUND"

    def __init__(self, campaign_key: str) -> None:
        super().__init__(f"Campaign not found for key: {campaign_key}", campaign_key=campaign_key)
        self.campaign_key = campaign_key


class TariffTypeUnresolvedError(ResolutionError):
    code = "TARIFF_TYPE_UNRESOLVED"

    def __init__(self, tariff_id: str) -> None:
        super().__init__(f"Cannot derive tariff type from tariff id: {tariff_id!r}", tariff_id=tariff_id)
        self.tariff_id = tariff_id


# ---------------------------------------------------------------------------
# Connectivity / persistence
# ---------------------------------------------------------------------------

class ConnectivityError(ContractingError):
    code = "CONNECTIVITY_ERROR"


class StoreUnavailableError(ConnectivityError):
    code = "STORE_UNAVAILABLE"


class PriceFeedUnavailableError(ConnectivityError):
    code = "PRICE_FEED_UNAVAILABLE"


class PersistenceError(ContractingError):
    code = "PERSISTENCE_ERROR"


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------

class IntegrityError(ContractingError):
    code = "INTEGRITY_ERROR"


class MarketLocationDraftError(IntegrityError):
    """Market-location draft creation failed; the contract draft was rolled back."""

    code = "MALO_DRAFT_CREATION_FAILED"


class ActivationError(IntegrityError):
    code = "ACTIVATION_FAILED"


# ---------------------------------------------------------------------------
# Domain state machine
# ---------------------------------------------------------------------------

class DomainError(ContractingError):
    code = "DOMAIN_ERROR"


class DraftNotFoundError(DomainError):
    code = "DRAFT_NOT_FOUND"


class DraftNotApprovedError(DomainError):
    code = "DRAFT_NOT_APPROVED"


class DraftAlreadyActiveError(DomainError):
    code = "DRAFT_ALREADY_ACTIVE"


__all__ = [
    "ContractingError",
    "ValidationError",
    "VoucherNotApplicableError",
    "FieldNotEditableError",
    "ResolutionError",
    "CampaignNotFoundError",
    "TariffTypeUnresolvedError",
    "ConnectivityError",
    "StoreUnavailableError",
    "PriceFeedUnavailableError",
    "PersistenceError",
    "IntegrityError",
    "MarketLocationDraftError",
    "ActivationError",
    "DomainError",
    "DraftNotFoundError",
    "DraftNotApprovedError",
    "DraftAlreadyActiveError",
]
