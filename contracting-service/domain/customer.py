"""
Domain: Customer.

Customers are identified by email for the purpose of onboarding. The core
only reads them and creates them on first import; profile maintenance
belongs to another subsystem.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class CustomerDetails:
    """Contact and address data as submitted by the sales funnel."""

    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    street: Optional[str] = None
    house_number: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Customer:
    customer_id: UUID
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    street: Optional[str] = None
    house_number: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
